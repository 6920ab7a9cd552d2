import argparse
import logging
import sys
import threading
from typing import List, Optional

from omegaconf import DictConfig

from .common.config import ConfigManager
from .common.exceptions import ConfigurationError
from .common.logging import setup_logger
from .common.metrics import SimulationMetrics
from .control.application import IntersectionBuilder
from .control.infrastructure import VirtualScheduler

logger = logging.getLogger(__name__)


def run_simulation(cfg: DictConfig, stop_event: Optional[threading.Event] = None) -> SimulationMetrics:
    """
    Builds the intersection described by ``cfg`` and runs it for
    ``intersection.duration`` time units, or until interrupted.
    """
    icfg = cfg.intersection

    builder = IntersectionBuilder(cfg)
    controller = builder.build_controller()
    scheduler = builder.scheduler

    controller.run(icfg.tick_interval)
    try:
        if isinstance(scheduler, VirtualScheduler):
            scheduler.advance(icfg.duration)
        else:
            stop_event = stop_event or threading.Event()
            timeout = None
            if icfg.duration is not None:
                timeout = icfg.duration * icfg.scheduler.time_unit_seconds
            # Event.wait keeps the main thread responsive to Ctrl+C
            stop_event.wait(timeout)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        controller.stop()

    for signal_id, status in controller.get_status().items():
        logger.info(
            f"{signal_id}: {status['phase']} cars={status['car_demand']} "
            f"pedestrians={status['pedestrian_demand']}"
        )

    metrics = builder.metrics_collector.get_metrics()
    logger.info(f"Simulation metrics: {metrics.to_dict()}")
    return metrics


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point: ``python -m trafficsync.main [--profile NAME] [key=value ...]``
    """
    parser = argparse.ArgumentParser(description="trafficsync - coordinated traffic signal simulation")
    parser.add_argument('--profile', default='default', help="Config profile under conf/intersection/")
    parser.add_argument('--config-dir', default=None, help="Directory holding the intersection/ profiles")
    parser.add_argument('--duration', type=float, default=None, help="Run time in time units")

    args, unknown = parser.parse_known_args(argv)

    overrides = list(unknown)
    if args.duration is not None:
        overrides.append(f"intersection.duration={args.duration}")

    manager = ConfigManager(args.config_dir) if args.config_dir else ConfigManager()
    try:
        cfg = manager.load_intersection_config(args.profile, overrides=overrides)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logger("trafficsync", cfg.intersection.logging.level)
    logger.info(f"Starting intersection '{cfg.intersection.name}' (profile: {args.profile})")

    run_simulation(cfg)
    return 0


if __name__ == "__main__":
    sys.exit(main())
