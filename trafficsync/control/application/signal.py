"""
Traffic signal state machine.

Every mutation of a signal (demand admission, notification merge,
re-evaluation, phase timeout) runs under the signal's own lock. Peers are
only contacted after the lock is released, so two signals never wait on
each other.
"""
import logging
import threading
import time
from typing import FrozenSet, Iterable, Optional, Tuple

from ...common.exceptions import ConfigurationError, SchedulerClosedError
from ..domain.entities import (
    MAX_CARS,
    MAX_PEDESTRIANS,
    MAX_VEHICLE_GREEN,
    BASE_VEHICLE_GREEN,
    PEDESTRIAN_GREEN,
    CARS_PER_GREEN,
    PEDESTRIANS_PER_GREEN,
    Phase,
    SignalKind,
    EventKind,
    Notification,
    SignalSnapshot,
    SignalEvent
)
from ..domain.protocols import SignalNetwork, SignalObserver, TimerHandle

logger = logging.getLogger(__name__)


def green_duration(kind: SignalKind, car_demand: int) -> int:
    """Green time in time units: adaptive for vehicles, fixed for pedestrians."""
    if kind is SignalKind.VEHICLE:
        return min(MAX_VEHICLE_GREEN, BASE_VEHICLE_GREEN + car_demand // 2)
    return PEDESTRIAN_GREEN


class TrafficSignal:
    """
    One traffic light with its own phase and demand counters.
    """

    def __init__(self, signal_id: str, kind: SignalKind, observer: Optional[SignalObserver] = None):
        if not signal_id:
            raise ConfigurationError("Signal id must be a non-empty string")

        self.signal_id = signal_id
        self.kind = kind
        self.observer = observer

        self._phase = Phase.RED
        self._car_demand = 0
        self._pedestrian_demand = 0

        self._network: Optional[SignalNetwork] = None
        self._peer_order: Tuple[str, ...] = ()

        self._pending_timeout: Optional[TimerHandle] = None
        # Bumped on every phase change; a timeout only acts on its own green phase
        self._green_generation = 0
        self._last_green_duration: Optional[int] = None
        # Orders this signal's events; they are published after the lock is released
        self._event_sequence = 0

        self._lock = threading.RLock()

    def __repr__(self):
        return f"TrafficSignal(id={self.signal_id!r}, kind={self.kind.value})"

    @property
    def is_vehicle(self) -> bool:
        return self.kind is SignalKind.VEHICLE

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self._phase

    @property
    def car_demand(self) -> int:
        with self._lock:
            return self._car_demand

    @property
    def pedestrian_demand(self) -> int:
        with self._lock:
            return self._pedestrian_demand

    @property
    def peers(self) -> FrozenSet[str]:
        return frozenset(self._peer_order)

    @property
    def last_green_duration(self) -> Optional[int]:
        with self._lock:
            return self._last_green_duration

    @property
    def timeout_pending(self) -> bool:
        with self._lock:
            return self._pending_timeout is not None

    def attach(self, network: SignalNetwork, peer_ids: Iterable[str]):
        """
        Binds the signal to its coordination network and peer set.
        Duplicates and the signal's own id are dropped; order is kept.
        """
        peers = tuple(dict.fromkeys(p for p in peer_ids if p != self.signal_id))
        with self._lock:
            self._network = network
            self._peer_order = peers

    def snapshot(self) -> SignalSnapshot:
        with self._lock:
            return SignalSnapshot(
                signal_id=self.signal_id,
                kind=self.kind,
                phase=self._phase,
                car_demand=self._car_demand,
                pedestrian_demand=self._pedestrian_demand,
                peers=frozenset(self._peer_order),
                timeout_pending=self._pending_timeout is not None
            )

    # --- Demand admission ---

    def admit_car_demand(self) -> bool:
        """
        Adds one waiting car. Only vehicle signals below capacity accept it;
        anything else is a silent no-op. Returns True if admitted.
        """
        with self._lock:
            if self.kind is not SignalKind.VEHICLE or self._car_demand >= MAX_CARS:
                return False
            self._car_demand += 1
            event = self._event(EventKind.ADMIT)
            notification, sent = self._outbound()

        logger.debug(f"Signal [{self.signal_id}]: car admitted (cars: {event.car_demand})")
        self._emit(event)
        self._broadcast(notification, sent)
        return True

    def admit_pedestrian_demand(self) -> bool:
        """
        Adds one waiting pedestrian. Only pedestrian signals below capacity
        accept it. Returns True if admitted.
        """
        with self._lock:
            if self.kind is not SignalKind.PEDESTRIAN or self._pedestrian_demand >= MAX_PEDESTRIANS:
                return False
            self._pedestrian_demand += 1
            event = self._event(EventKind.ADMIT)
            notification, sent = self._outbound()

        logger.debug(f"Signal [{self.signal_id}]: pedestrian admitted (pedestrians: {event.pedestrian_demand})")
        self._emit(event)
        self._broadcast(notification, sent)
        return True

    def admit_native_demand(self) -> bool:
        if self.kind is SignalKind.VEHICLE:
            return self.admit_car_demand()
        return self.admit_pedestrian_demand()

    # --- Notifications ---

    def receive_notification(self, notification: Notification):
        """
        Merges a peer's counts into this signal's own counters and re-evaluates.
        Counts accumulate (saturating at the caps) whatever this signal's kind;
        negative counts are ignored.
        """
        if notification.sender_id == self.signal_id:
            return

        with self._lock:
            self._car_demand = min(MAX_CARS, self._car_demand + max(0, notification.car_count))
            self._pedestrian_demand = min(
                MAX_PEDESTRIANS, self._pedestrian_demand + max(0, notification.pedestrian_count)
            )
            event = self._event(EventKind.RECEIVE, sender_id=notification.sender_id)

        logger.debug(
            f"Signal [{self.signal_id}]: notification from {notification.sender_id} "
            f"(cars: {event.car_demand}, pedestrians: {event.pedestrian_demand})"
        )
        self._emit(event)
        self.reevaluate()

    # --- State machine ---

    def reevaluate(self) -> bool:
        """
        Applies the phase rules to the current demand.
        Returns True if the phase changed.
        """
        with self._lock:
            previous = self._phase
            duration = None

            if self._phase is Phase.RED:
                if self.kind is SignalKind.VEHICLE and self._car_demand > 0:
                    duration = self._enter_green(Phase.GREEN_VEHICLE)
                elif self.kind is SignalKind.PEDESTRIAN and self._pedestrian_demand > 0:
                    duration = self._enter_green(Phase.GREEN_PEDESTRIAN)

            if self._phase is Phase.GREEN_VEHICLE and self._car_demand == 0:
                self._enter_red()
            elif self._phase is Phase.GREEN_PEDESTRIAN and self._pedestrian_demand == 0:
                self._enter_red()

            if self._phase is previous:
                return False

            event = self._event(EventKind.TRANSITION, green_duration=duration)
            notification, sent = self._outbound()

        if duration is not None:
            logger.info(
                f"Signal [{self.signal_id}]: {previous.value} -> {event.phase.value} for {duration} units "
                f"(cars: {event.car_demand}, pedestrians: {event.pedestrian_demand})"
            )
        else:
            logger.info(f"Signal [{self.signal_id}]: {previous.value} -> {event.phase.value}")

        self._emit(event)
        self._broadcast(notification, sent)
        self._wake_peers()
        return True

    def cancel_timeout(self) -> bool:
        """
        Drops the pending phase timeout, leaving the phase as it is.
        Returns True if a timeout was pending.
        """
        with self._lock:
            if self._pending_timeout is None:
                return False
            self._pending_timeout.cancel()
            self._pending_timeout = None
            self._green_generation += 1
            return True

    def _enter_green(self, phase: Phase) -> int:
        """Called with lock acquired."""
        duration = green_duration(self.kind, self._car_demand)
        self._phase = phase
        self._green_generation += 1
        self._last_green_duration = duration

        if self._network is not None:
            generation = self._green_generation
            try:
                self._pending_timeout = self._network.schedule(
                    duration,
                    lambda: self._on_timeout(generation),
                    name=f"{self.signal_id}:timeout"
                )
            except SchedulerClosedError:
                logger.debug(f"Signal [{self.signal_id}]: scheduler closed, green phase has no timeout")
        return duration

    def _enter_red(self):
        """Called with lock acquired. Cancels the green phase's timeout."""
        self._phase = Phase.RED
        self._green_generation += 1
        if self._pending_timeout is not None:
            self._pending_timeout.cancel()
            self._pending_timeout = None

    def _on_timeout(self, generation: int):
        """
        End of a green phase: back to red, release part of the waiting
        demand, then tell the peers.
        """
        with self._lock:
            # Cancelled or superseded while already dispatched
            if generation != self._green_generation or self._phase is Phase.RED:
                return

            self._pending_timeout = None
            self._green_generation += 1
            self._phase = Phase.RED
            if self.kind is SignalKind.VEHICLE:
                self._car_demand = max(0, self._car_demand - CARS_PER_GREEN)
            else:
                self._pedestrian_demand = max(0, self._pedestrian_demand - PEDESTRIANS_PER_GREEN)

            event = self._event(EventKind.TIMEOUT)
            notification, sent = self._outbound()

        logger.info(
            f"Signal [{self.signal_id}]: green expired -> RED "
            f"(cars: {event.car_demand}, pedestrians: {event.pedestrian_demand})"
        )
        self._emit(event)
        self._broadcast(notification, sent)
        self._wake_peers()

    # --- Outbound ---

    def _notification(self) -> Notification:
        """Called with lock acquired."""
        return Notification(
            sender_id=self.signal_id,
            car_count=self._car_demand,
            pedestrian_count=self._pedestrian_demand,
            sender_phase=self._phase
        )

    def _event(self, kind: EventKind, green_duration: Optional[int] = None, sender_id: Optional[str] = None) -> SignalEvent:
        """Called with lock acquired."""
        self._event_sequence += 1
        return SignalEvent(
            signal_id=self.signal_id,
            kind=kind,
            phase=self._phase,
            car_demand=self._car_demand,
            pedestrian_demand=self._pedestrian_demand,
            timestamp=time.time(),
            green_duration=green_duration,
            sender_id=sender_id,
            sequence=self._event_sequence
        )

    def _outbound(self) -> Tuple[Notification, SignalEvent]:
        """
        Called with lock acquired. The notification for the peers and the
        SEND record describing it, sequenced with the other events.
        """
        return self._notification(), self._event(EventKind.SEND)

    def _emit(self, event: SignalEvent):
        if self.observer is not None:
            self.observer.publish(event)

    def _broadcast(self, notification: Notification, sent: SignalEvent):
        network = self._network
        if network is None or not self._peer_order:
            return

        self._emit(sent)
        for peer_id in self._peer_order:
            network.deliver(peer_id, notification)

    def _wake_peers(self):
        network = self._network
        if network is None:
            return
        for peer_id in self._peer_order:
            network.request_reevaluation(peer_id)


def new_signal(signal_id: str, is_vehicle: bool, observer: Optional[SignalObserver] = None) -> TrafficSignal:
    """Creates a vehicle or pedestrian signal in its initial RED state."""
    return TrafficSignal(signal_id, SignalKind.from_flag(is_vehicle), observer=observer)
