"""
Domain protocols for the Control module.
"""
from typing import Callable, Protocol

from .entities import Notification, SignalEvent


class TimerHandle(Protocol):
    """
    Handle to a scheduled callback.
    """
    def cancel(self) -> bool:
        ...

    @property
    def cancelled(self) -> bool:
        ...

    @property
    def active(self) -> bool:
        ...


class Scheduler(Protocol):
    """
    Delayed, periodic and immediate execution of callbacks.
    Delays and intervals are expressed in time units.
    """
    def call_later(self, delay: float, callback: Callable[[], None], name: str = "") -> TimerHandle:
        ...

    def call_every(self, interval: float, callback: Callable[[], None], name: str = "") -> TimerHandle:
        ...

    def submit(self, callback: Callable[[], None], name: str = "") -> None:
        ...

    def shutdown(self, wait: bool = True) -> None:
        ...


class SignalNetwork(Protocol):
    """
    The coordination domain a signal talks to: delivers its notifications,
    wakes its peers and runs its phase timer.
    """
    def deliver(self, target_id: str, notification: Notification) -> None:
        ...

    def request_reevaluation(self, target_id: str) -> None:
        ...

    def schedule(self, delay: float, callback: Callable[[], None], name: str = "") -> TimerHandle:
        ...


class SignalObserver(Protocol):
    """
    Receives every observable signal event.
    """
    def publish(self, event: SignalEvent) -> None:
        ...
