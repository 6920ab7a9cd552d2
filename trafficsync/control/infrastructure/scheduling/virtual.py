"""
Deterministic scheduler driven by a manual clock.
"""
import heapq
import itertools
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from ....common.exceptions import SchedulerClosedError
from ....common.metrics import MetricsCollector
from .base import ScheduledCall, run_guarded


class VirtualScheduler:
    """
    Single-threaded scheduler whose clock only moves when ``advance`` is called.
    Submitted work runs in submission order, timers in deadline order,
    which makes whole-intersection runs reproducible.
    """

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None, max_steps: int = 100_000):
        self.metrics_collector = metrics_collector
        self.max_steps = max_steps
        self.now = 0.0

        self._timers: List[ScheduledCall] = []
        self._ready: Deque[Tuple[Callable[[], None], str]] = deque()
        self._sequence = itertools.count()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def call_later(self, delay: float, callback: Callable[[], None], name: str = "") -> ScheduledCall:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        return self._push(ScheduledCall(self.now + delay, callback, name))

    def call_every(self, interval: float, callback: Callable[[], None], name: str = "") -> ScheduledCall:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        return self._push(ScheduledCall(self.now, callback, name, interval=interval))

    def submit(self, callback: Callable[[], None], name: str = "") -> None:
        self._ensure_open(name)
        self._ready.append((callback, name or getattr(callback, "__name__", "callback")))

    def _push(self, call: ScheduledCall) -> ScheduledCall:
        self._ensure_open(call.name)
        call.sequence = next(self._sequence)
        heapq.heappush(self._timers, call)
        return call

    def _ensure_open(self, name: str):
        if self._closed:
            raise SchedulerClosedError(f"Cannot schedule '{name}': scheduler is shut down")

    def run_pending(self) -> int:
        """Runs submitted work and timers due at the current time."""
        return self.advance(0)

    def advance(self, duration: float) -> int:
        """
        Moves the clock forward by ``duration`` time units, running every
        submitted callback and every timer that falls due on the way.
        Returns the number of callbacks executed.
        """
        if duration < 0:
            raise ValueError(f"duration must be >= 0, got {duration}")

        target = self.now + duration
        executed = self._drain_ready()

        while self._timers and self._timers[0].when <= target and not self._closed:
            call = heapq.heappop(self._timers)
            if call.cancelled:
                continue

            self.now = call.when
            call.fired = True
            if call.periodic:
                call.when += call.interval
                heapq.heappush(self._timers, call)

            run_guarded(call.callback, call.name, self.metrics_collector)
            executed += 1 + self._drain_ready()

        if not self._closed:
            self.now = target
        return executed

    def _drain_ready(self) -> int:
        executed = 0
        while self._ready and not self._closed:
            if executed >= self.max_steps:
                raise RuntimeError(f"Submitted work did not settle after {self.max_steps} callbacks")
            callback, name = self._ready.popleft()
            run_guarded(callback, name, self.metrics_collector)
            executed += 1
        return executed

    def pending_timers(self) -> int:
        return sum(1 for call in self._timers if not call.cancelled)

    def shutdown(self, wait: bool = True) -> None:
        """Drops queued work and timers. ``wait`` has nothing to wait for here."""
        self._closed = True
        self._timers.clear()
        self._ready.clear()
