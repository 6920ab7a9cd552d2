import logging
import queue
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from ....common.metrics import MetricsCollector
from ...domain.entities import SignalEvent

logger = logging.getLogger(__name__)

ALL_SIGNALS = "*"


class EventBroadcaster:
    """
    Pub/sub system that fans signal events out to subscribers.
    Thread-safe; publishing never blocks on a slow subscriber.
    """

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics_collector = metrics_collector

        # Subscribers per signal (ALL_SIGNALS receives everything)
        self._subscribers: Dict[str, Set[queue.Queue]] = {}
        self._listeners: List[Callable[[SignalEvent], None]] = []
        self._lock = threading.Lock()

        # Cache latest state per signal (for new subscribers)
        self._latest_state: Dict[str, dict] = {}
        self._latest_sequence: Dict[str, int] = {}
        self.dropped_events = 0

    def subscribe(self, signal_id: str = ALL_SIGNALS, queue_size: int = 100) -> queue.Queue:
        """
        Subscribes to events of one signal, or of every signal by default.
        Returns a queue that will receive serialized events.
        """
        subscriber = queue.Queue(maxsize=queue_size)

        with self._lock:
            self._subscribers.setdefault(signal_id, set()).add(subscriber)
            if signal_id == ALL_SIGNALS:
                initial = list(self._latest_state.values())
            else:
                initial = [self._latest_state[signal_id]] if signal_id in self._latest_state else []

        # Send latest known state immediately
        for data in initial:
            try:
                subscriber.put_nowait(data)
            except queue.Full:
                break

        return subscriber

    def unsubscribe(self, signal_id: str, subscriber: queue.Queue):
        """Removes a subscriber."""
        with self._lock:
            if signal_id in self._subscribers:
                self._subscribers[signal_id].discard(subscriber)
                if not self._subscribers[signal_id]:
                    del self._subscribers[signal_id]

    def add_listener(self, listener: Callable[[SignalEvent], None]):
        """Registers a callable invoked synchronously for every event."""
        with self._lock:
            self._listeners.append(listener)

    def publish(self, event: SignalEvent):
        """
        Transmits an event to all interested subscribers.
        Non-blocking: if a subscriber queue is full, the event is skipped for it.
        The latest-state cache only moves forward in the signal's event sequence.
        """
        data = self.serialize_event(event)

        with self._lock:
            # Events of one signal can arrive out of order from different threads
            if event.sequence >= self._latest_sequence.get(event.signal_id, 0):
                self._latest_state[event.signal_id] = data
                self._latest_sequence[event.signal_id] = event.sequence
            subscribers = self._subscribers.get(event.signal_id, set()) | self._subscribers.get(ALL_SIGNALS, set())
            listeners = list(self._listeners)

        if self.metrics_collector:
            self.metrics_collector.record_event(event.kind.value)

        for subscriber in subscribers:
            try:
                subscriber.put_nowait(data)
            except queue.Full:
                # Slow subscriber - skip
                self.dropped_events += 1
                logger.warning(f"Skipping slow subscriber for {event.signal_id}")

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Event listener failed on {event.kind.value} from {event.signal_id}")

    def latest_state(self, signal_id: str) -> Optional[dict]:
        with self._lock:
            return self._latest_state.get(signal_id)

    def serialize_event(self, event: SignalEvent) -> dict:
        """
        Converts a SignalEvent to a JSON-serializable dict.
        """
        data = event.to_dict()
        data["time"] = datetime.fromtimestamp(event.timestamp).isoformat()
        return data
