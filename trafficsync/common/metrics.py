from dataclasses import dataclass, field
from typing import Dict, List
import threading
import time

@dataclass
class SimulationMetrics:
    """Simulation counters and timings"""
    uptime_seconds: float
    ticks: int
    avg_tick_time_ms: float
    callback_failures: int
    events: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'uptime_seconds': self.uptime_seconds,
            'ticks': self.ticks,
            'avg_tick_time_ms': self.avg_tick_time_ms,
            'callback_failures': self.callback_failures,
            'events': dict(self.events)
        }


class MetricsCollector:
    """Collects and aggregates simulation metrics. Safe to call from any thread."""

    def __init__(self):
        self.tick_times: List[float] = []
        self.ticks = 0
        self.callback_failures = 0
        self.event_counts: Dict[str, int] = {}
        self.start_time = time.time()
        self._lock = threading.Lock()

    def record_tick(self, duration_ms: float):
        with self._lock:
            self.ticks += 1
            self.tick_times.append(duration_ms)
            # Keep buffer size manageable
            if len(self.tick_times) > 1000:
                self.tick_times.pop(0)

    def record_event(self, event_kind: str):
        with self._lock:
            self.event_counts[event_kind] = self.event_counts.get(event_kind, 0) + 1

    def record_callback_failure(self):
        with self._lock:
            self.callback_failures += 1

    def get_metrics(self) -> SimulationMetrics:
        with self._lock:
            avg_tick = sum(self.tick_times) / len(self.tick_times) if self.tick_times else 0.0
            return SimulationMetrics(
                uptime_seconds=time.time() - self.start_time,
                ticks=self.ticks,
                avg_tick_time_ms=avg_tick,
                callback_failures=self.callback_failures,
                events=dict(self.event_counts)
            )
