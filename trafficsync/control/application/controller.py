"""
Orchestrator for a set of coordinated traffic signals.
"""
import logging
import threading
import time
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from ...common.exceptions import ConfigurationError, SchedulerClosedError
from ...common.logging import log_execution_time
from ...common.metrics import MetricsCollector
from ..domain.entities import Notification
from ..domain.protocols import Scheduler, TimerHandle
from .signal import TrafficSignal

logger = logging.getLogger(__name__)


class IntersectionController:
    """
    Owns the signals of one intersection, wires them all-to-all and drives
    the periodic simulation tick.

    It is also the network the signals talk through: notifications are
    delivered synchronously, peer re-evaluations and phase timeouts go
    through the shared scheduler.
    """

    def __init__(self, scheduler: Scheduler, metrics_collector: Optional[MetricsCollector] = None):
        self.scheduler = scheduler
        self.metrics_collector = metrics_collector

        self._signals: Dict[str, TrafficSignal] = {}
        self._adjacency: Dict[str, FrozenSet[str]] = {}
        self._timers: List[TimerHandle] = []
        self._tick_handle: Optional[TimerHandle] = None
        self._lock = threading.Lock()
        self._running = False
        self._stopped = False

    @property
    def signals(self) -> Tuple[TrafficSignal, ...]:
        """Signals in registration order."""
        return tuple(self._signals.values())

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return bool(self._adjacency) and self._adjacency.keys() == self._signals.keys()

    def get_signal(self, signal_id: str) -> Optional[TrafficSignal]:
        return self._signals.get(signal_id)

    def peers_of(self, signal_id: str) -> FrozenSet[str]:
        return self._adjacency.get(signal_id, frozenset())

    # --- Topology ---

    def register(self, signal: TrafficSignal) -> TrafficSignal:
        """Adds a signal to the intersection."""
        if self._running:
            raise ConfigurationError(f"Cannot register {signal.signal_id}: simulation already running")
        if signal.signal_id in self._signals:
            raise ConfigurationError(f"Signal {signal.signal_id} already registered")

        self._signals[signal.signal_id] = signal
        logger.debug(f"Registered signal {signal.signal_id} ({signal.kind.value})")
        return signal

    def connect_all(self):
        """
        Makes every signal a peer of every other signal.
        Calling it again rebuilds the same sets.
        """
        if self._running:
            raise ConfigurationError("Cannot rewire signals while the simulation is running")
        if not self._signals:
            raise ConfigurationError("No signals registered")

        ids = list(self._signals)
        self._adjacency = {
            signal_id: frozenset(other for other in ids if other != signal_id)
            for signal_id in ids
        }
        for signal_id, signal in self._signals.items():
            # Registration order is the notification order
            signal.attach(self, [other for other in ids if other != signal_id])

        logger.info(f"Connected {len(ids)} signals ({len(ids) * (len(ids) - 1)} peer links)")

    # --- Simulation ---

    def run(self, tick_interval: float) -> TimerHandle:
        """
        Starts the periodic tick, first tick immediately.
        ``tick_interval`` is in time units.
        """
        if tick_interval <= 0:
            raise ConfigurationError(f"tick_interval must be > 0, got {tick_interval}")
        if not self.is_connected:
            raise ConfigurationError("connect_all() must be called after the last registration and before run()")

        with self._lock:
            if self._stopped:
                raise ConfigurationError("Simulation was stopped and its scheduler shut down")
            if self._running:
                raise ConfigurationError("Simulation already running")
            self._running = True

        try:
            self._tick_handle = self.scheduler.call_every(tick_interval, self.tick, name="intersection:tick")
        except SchedulerClosedError as e:
            self._running = False
            raise ConfigurationError(f"Cannot start simulation: {e}") from e
        except Exception:
            self._running = False
            raise
        logger.info(f"Simulation started: {len(self._signals)} signals, tick every {tick_interval} units")
        return self._tick_handle

    @log_execution_time(logger)
    def tick(self):
        """
        One simulation step: every signal receives one unit of its own kind
        of demand, then every signal re-evaluates.
        """
        start = time.time()

        for signal in self.signals:
            self._guarded(signal, signal.admit_native_demand, "admit")
        for signal in self.signals:
            self._guarded(signal, signal.reevaluate, "reevaluate")

        if self.metrics_collector:
            self.metrics_collector.record_tick((time.time() - start) * 1000)

    def stop(self, wait: bool = True):
        """
        Stops ticking, drops pending phase timeouts and shuts the scheduler
        down, letting in-flight callbacks finish when ``wait`` is set.
        """
        with self._lock:
            was_running = self._running
            self._running = False
            self._stopped = True
            timers, self._timers = self._timers, []

        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        for handle in timers:
            handle.cancel()

        self.scheduler.shutdown(wait=wait)
        # After shutdown no worker can arm a new timeout
        for signal in self._signals.values():
            signal.cancel_timeout()
        if was_running:
            logger.info("Simulation stopped")

    def _guarded(self, signal: TrafficSignal, operation: Callable[[], object], label: str):
        try:
            operation()
        except Exception:
            logger.exception(f"Signal {signal.signal_id}: {label} failed")
            if self.metrics_collector:
                self.metrics_collector.record_callback_failure()

    # --- Signal network ---

    def deliver(self, target_id: str, notification: Notification):
        target = self._signals.get(target_id)
        if target is None:
            logger.warning(f"Dropping notification from {notification.sender_id}: unknown signal {target_id}")
            return
        self._guarded(target, lambda: target.receive_notification(notification), "receive")

    def request_reevaluation(self, target_id: str):
        target = self._signals.get(target_id)
        if target is None:
            logger.warning(f"Cannot wake unknown signal {target_id}")
            return
        try:
            self.scheduler.submit(target.reevaluate, name=f"{target_id}:reevaluate")
        except SchedulerClosedError:
            logger.debug(f"Scheduler closed, skipping re-evaluation of {target_id}")

    def schedule(self, delay: float, callback: Callable[[], None], name: str = "") -> TimerHandle:
        handle = self.scheduler.call_later(delay, callback, name=name)
        with self._lock:
            # Forget timers that already fired or were cancelled
            self._timers = [h for h in self._timers if h.active]
            self._timers.append(handle)
        return handle

    def get_status(self) -> Dict[str, dict]:
        """Returns the state of every signal, in registration order."""
        return {
            signal_id: signal.snapshot().to_dict()
            for signal_id, signal in self._signals.items()
        }
