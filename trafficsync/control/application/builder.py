import logging
from typing import Dict, List, Optional

from omegaconf import DictConfig

from ...common.metrics import MetricsCollector
from ..domain.entities import SignalEvent, SignalKind
from ..domain.protocols import Scheduler
from ..infrastructure.broadcast import EventBroadcaster
from ..infrastructure.scheduling import ThreadPoolScheduler, VirtualScheduler
from .controller import IntersectionController
from .signal import TrafficSignal

logger = logging.getLogger(__name__)


class IntersectionBuilder:
    """
    Builder pattern for constructing the intersection simulation.
    Centralizes component instantiation and wiring.
    """

    def __init__(self, config: DictConfig):
        self.config = config
        self.intersection_cfg = config.intersection
        self.metrics_collector = MetricsCollector()

        # Components
        self.scheduler: Optional[Scheduler] = None
        self.broadcaster: Optional[EventBroadcaster] = None
        self.signals: List[TrafficSignal] = []
        self.controller: Optional[IntersectionController] = None

    def build_scheduler(self) -> 'IntersectionBuilder':
        sched_cfg = self.intersection_cfg.scheduler
        if sched_cfg.type == "virtual":
            logger.info("Using virtual clock scheduler")
            self.scheduler = VirtualScheduler(metrics_collector=self.metrics_collector)
        else:
            logger.info(
                f"Using thread pool scheduler ({sched_cfg.max_workers} workers, "
                f"{sched_cfg.time_unit_seconds}s per time unit)"
            )
            self.scheduler = ThreadPoolScheduler(
                max_workers=sched_cfg.max_workers,
                time_unit_seconds=sched_cfg.time_unit_seconds,
                metrics_collector=self.metrics_collector
            )
        return self

    def build_broadcaster(self) -> 'IntersectionBuilder':
        broadcast_cfg = self.intersection_cfg.broadcast
        if broadcast_cfg.enabled:
            self.broadcaster = EventBroadcaster(metrics_collector=self.metrics_collector)
            if broadcast_cfg.log_events:
                self.broadcaster.add_listener(_log_event)
        return self

    def build_signals(self) -> 'IntersectionBuilder':
        if self.intersection_cfg.signals:
            specs = [(spec.id, SignalKind.from_flag(spec.vehicle)) for spec in self.intersection_cfg.signals]
        else:
            specs = [
                (f"vehicle-{i}", SignalKind.VEHICLE)
                for i in range(1, self.intersection_cfg.vehicle_signals + 1)
            ] + [
                (f"pedestrian-{i}", SignalKind.PEDESTRIAN)
                for i in range(1, self.intersection_cfg.pedestrian_signals + 1)
            ]

        self.signals = [
            TrafficSignal(signal_id, kind, observer=self.broadcaster)
            for signal_id, kind in specs
        ]
        logger.info(f"Created {len(self.signals)} signals for {self.intersection_cfg.name}")
        return self

    def build_controller(self) -> IntersectionController:
        if not self.scheduler:
            self.build_scheduler()
        if not self.broadcaster and self.intersection_cfg.broadcast.enabled:
            self.build_broadcaster()
        if not self.signals:
            self.build_signals()

        self.controller = IntersectionController(self.scheduler, metrics_collector=self.metrics_collector)
        for signal in self.signals:
            self.controller.register(signal)
        self.controller.connect_all()
        return self.controller

    def get_components(self) -> Dict:
        """Returns built components for external use (e.g. status reporting)"""
        return {
            'scheduler': self.scheduler,
            'broadcaster': self.broadcaster,
            'signals': list(self.signals),
            'controller': self.controller,
            'metrics_collector': self.metrics_collector
        }


def _log_event(event: SignalEvent):
    logger.info(
        f"[{event.signal_id}] {event.kind.value}: phase={event.phase.value} "
        f"cars={event.car_demand} pedestrians={event.pedestrian_demand}"
    )
