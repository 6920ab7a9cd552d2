"""
Domain module initialization.
"""
from .entities import (
    MAX_CARS,
    MAX_PEDESTRIANS,
    Phase,
    SignalKind,
    EventKind,
    Notification,
    SignalSnapshot,
    SignalEvent
)
from .protocols import (
    TimerHandle,
    Scheduler,
    SignalNetwork,
    SignalObserver
)
