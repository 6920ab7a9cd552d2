"""
Timer handles and guarded execution shared by the schedulers.
"""
import logging
from typing import Callable, Optional

from ....common.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class ScheduledCall:
    """
    A one-shot or periodic callback waiting in a scheduler's timer heap.
    Doubles as the handle returned to the caller.
    """

    def __init__(
        self,
        when: float,
        callback: Callable[[], None],
        name: str = "",
        interval: Optional[float] = None,
        sequence: int = 0
    ):
        self.when = when
        self.callback = callback
        self.name = name or getattr(callback, "__name__", "callback")
        self.interval = interval
        self.sequence = sequence
        self.running = False
        self.fired = False
        self._cancelled = False

    def cancel(self) -> bool:
        """Cancels the call. Returns False if it was already cancelled."""
        if self._cancelled:
            return False
        self._cancelled = True
        return True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        """True while the call may still run."""
        return not self._cancelled and (self.periodic or not self.fired)

    @property
    def periodic(self) -> bool:
        return self.interval is not None

    def __lt__(self, other: 'ScheduledCall') -> bool:
        # Equal deadlines fire in scheduling order
        return (self.when, self.sequence) < (other.when, other.sequence)

    def __repr__(self):
        return f"ScheduledCall(name={self.name!r}, when={self.when:.3f}, cancelled={self._cancelled})"


def run_guarded(
    callback: Callable[[], None],
    name: str,
    metrics_collector: Optional[MetricsCollector] = None
) -> bool:
    """
    Runs a callback, logging and counting any exception instead of letting
    it reach the scheduler. Returns True on success.
    """
    try:
        callback()
        return True
    except Exception:
        logger.exception(f"Scheduled callback '{name}' failed")
        if metrics_collector:
            metrics_collector.record_callback_failure()
        return False
