import hydra
from omegaconf import DictConfig, OmegaConf

from trafficsync.common.config import ConfigManager
from trafficsync.common.logging import setup_logger
from trafficsync.main import run_simulation

@hydra.main(version_base=None, config_path="../conf", config_name="config")
def main(cfg: DictConfig):
    cfg = ConfigManager().validate(cfg)
    setup_logger("trafficsync", cfg.intersection.logging.level)
    print(f"Configuration:\n{OmegaConf.to_yaml(cfg)}")

    run_simulation(cfg)

if __name__ == "__main__":
    main()
