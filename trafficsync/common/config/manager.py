from pathlib import Path
from typing import List, Optional

from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import OmegaConfBaseException

from ..exceptions import ConfigurationError
from .models import AppConfig

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[3] / "conf"
SCHEDULER_TYPES = ("thread_pool", "virtual")


class ConfigManager:
    """Centralizes loading and validation of the simulation configuration"""

    def __init__(self, config_dir: Path = DEFAULT_CONFIG_DIR):
        self.config_dir = Path(config_dir)

    def load_intersection_config(self, profile: str = "default", overrides: Optional[List[str]] = None) -> DictConfig:
        """
        Loads ``conf/intersection/<profile>.yaml`` on top of the structured
        defaults, applies dotlist overrides (``intersection.tick_interval=1``)
        and validates the result.
        """
        config_path = self.config_dir / "intersection" / f"{profile}.yaml"

        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")

        try:
            raw_cfg = OmegaConf.create({"intersection": OmegaConf.load(config_path)})
            cli_cfg = OmegaConf.from_dotlist(overrides or [])
            cfg = OmegaConf.merge(raw_cfg, cli_cfg)
        except OmegaConfBaseException as e:
            raise ConfigurationError(f"Invalid config {config_path}: {e}") from e

        return self.validate(cfg)

    def validate(self, cfg: DictConfig) -> DictConfig:
        """
        Merges a raw config (from a file or from Hydra) into the typed schema
        and checks value ranges.
        """
        try:
            merged = OmegaConf.merge(OmegaConf.structured(AppConfig), cfg)
        except OmegaConfBaseException as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        icfg = merged.intersection
        if icfg.tick_interval <= 0:
            raise ConfigurationError(f"tick_interval must be > 0, got {icfg.tick_interval}")
        if icfg.duration is not None and icfg.duration <= 0:
            raise ConfigurationError(f"duration must be > 0, got {icfg.duration}")
        if icfg.vehicle_signals < 0 or icfg.pedestrian_signals < 0:
            raise ConfigurationError("Signal counts must be >= 0")
        if icfg.scheduler.type not in SCHEDULER_TYPES:
            raise ConfigurationError(
                f"Unknown scheduler type {icfg.scheduler.type!r}, expected one of {SCHEDULER_TYPES}"
            )
        if icfg.scheduler.max_workers < 1:
            raise ConfigurationError(f"scheduler.max_workers must be >= 1, got {icfg.scheduler.max_workers}")
        if icfg.scheduler.time_unit_seconds <= 0:
            raise ConfigurationError(
                f"scheduler.time_unit_seconds must be > 0, got {icfg.scheduler.time_unit_seconds}"
            )
        if icfg.scheduler.type == "virtual" and icfg.duration is None:
            raise ConfigurationError("A virtual scheduler needs a finite duration")

        if icfg.signals:
            try:
                ids = [spec.id for spec in icfg.signals]
            except OmegaConfBaseException as e:
                raise ConfigurationError(f"Invalid signal list: {e}") from e
            if len(ids) != len(set(ids)):
                raise ConfigurationError(f"Duplicate signal ids in config: {ids}")
        elif icfg.vehicle_signals + icfg.pedestrian_signals == 0:
            raise ConfigurationError("Configuration defines no signals")

        return merged
