"""
Wall-clock scheduler backed by one dispatcher thread and a bounded worker pool.
"""
import heapq
import itertools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from ....common.exceptions import SchedulerClosedError
from ....common.metrics import MetricsCollector
from .base import ScheduledCall, run_guarded

logger = logging.getLogger(__name__)


class ThreadPoolScheduler:
    """
    Runs timers and fire-and-forget work on a fixed set of threads:
    1. Dispatcher thread: sleeps until the earliest timer is due
    2. Worker pool: executes the callbacks

    Delays are given in time units; ``time_unit_seconds`` maps them to wall time.
    """

    def __init__(
        self,
        max_workers: int = 4,
        time_unit_seconds: float = 1.0,
        metrics_collector: Optional[MetricsCollector] = None
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if time_unit_seconds <= 0:
            raise ValueError(f"time_unit_seconds must be > 0, got {time_unit_seconds}")

        self.max_workers = max_workers
        self.time_unit_seconds = time_unit_seconds
        self.metrics_collector = metrics_collector

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="SignalWorker")
        self._timers: List[ScheduledCall] = []
        self._condition = threading.Condition()
        self._sequence = itertools.count()
        self._closed = False

        self._dispatcher = threading.Thread(
            target=self._dispatch_loop,
            name="SchedulerDispatcher",
            daemon=True
        )
        self._dispatcher.start()

    @property
    def closed(self) -> bool:
        return self._closed

    def call_later(self, delay: float, callback: Callable[[], None], name: str = "") -> ScheduledCall:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        when = time.monotonic() + delay * self.time_unit_seconds
        return self._push(ScheduledCall(when, callback, name))

    def call_every(self, interval: float, callback: Callable[[], None], name: str = "") -> ScheduledCall:
        """Fixed-rate repetition, first run as soon as possible."""
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        call = ScheduledCall(time.monotonic(), callback, name, interval=interval * self.time_unit_seconds)
        return self._push(call)

    def submit(self, callback: Callable[[], None], name: str = "") -> None:
        name = name or getattr(callback, "__name__", "callback")
        with self._condition:
            if self._closed:
                raise SchedulerClosedError(f"Cannot submit '{name}': scheduler is shut down")
            self._executor.submit(run_guarded, callback, name, self.metrics_collector)

    def _push(self, call: ScheduledCall) -> ScheduledCall:
        with self._condition:
            if self._closed:
                raise SchedulerClosedError(f"Cannot schedule '{call.name}': scheduler is shut down")
            call.sequence = next(self._sequence)
            heapq.heappush(self._timers, call)
            self._condition.notify()
        return call

    def _dispatch_loop(self):
        """Thread dedicated to waking up due timers."""
        with self._condition:
            while not self._closed:
                if not self._timers:
                    self._condition.wait()
                    continue

                call = self._timers[0]
                if call.cancelled:
                    heapq.heappop(self._timers)
                    continue

                delay = call.when - time.monotonic()
                if delay > 0:
                    # Woken early by a new timer or by shutdown
                    self._condition.wait(timeout=delay)
                    continue

                heapq.heappop(self._timers)
                call.fired = True
                if call.periodic:
                    call.when += call.interval
                    heapq.heappush(self._timers, call)
                    if call.running:
                        logger.warning(f"Skipping '{call.name}': previous run still in progress")
                        continue
                    call.running = True

                self._executor.submit(self._run_call, call)

        logger.debug("Dispatcher thread stopped")

    def _run_call(self, call: ScheduledCall):
        try:
            if not call.cancelled:
                run_guarded(call.callback, call.name, self.metrics_collector)
        finally:
            call.running = False

    def pending_timers(self) -> int:
        with self._condition:
            return sum(1 for call in self._timers if not call.cancelled)

    def shutdown(self, wait: bool = True) -> None:
        """
        Stops dispatching timers and rejects new work.
        With wait=True, blocks until in-flight callbacks finish.
        """
        with self._condition:
            if self._closed:
                return
            self._closed = True
            self._timers.clear()
            self._condition.notify_all()

        if threading.current_thread() is not self._dispatcher:
            self._dispatcher.join(timeout=2.0)
        self._executor.shutdown(wait=wait)
        logger.debug("Scheduler shut down")
