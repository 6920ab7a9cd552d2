"""
Domain entities for the Control module.
"""
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_CARS = 20
MAX_PEDESTRIANS = 50

# Phase timing, in time units
MAX_VEHICLE_GREEN = 60
BASE_VEHICLE_GREEN = 5
PEDESTRIAN_GREEN = 10

# Demand released by one expired green phase
CARS_PER_GREEN = 5
PEDESTRIANS_PER_GREEN = 10


class Phase(Enum):
    RED = "RED"
    GREEN_VEHICLE = "GREEN_VEHICLE"
    GREEN_PEDESTRIAN = "GREEN_PEDESTRIAN"

    @property
    def is_green(self) -> bool:
        return self is not Phase.RED


class SignalKind(Enum):
    VEHICLE = "VEHICLE"
    PEDESTRIAN = "PEDESTRIAN"

    @classmethod
    def from_flag(cls, is_vehicle: bool) -> 'SignalKind':
        return cls.VEHICLE if is_vehicle else cls.PEDESTRIAN


class EventKind(Enum):
    ADMIT = "admit"
    SEND = "send"
    RECEIVE = "receive"
    TRANSITION = "transition"
    TIMEOUT = "timeout"


class Notification(BaseModel):
    """
    Snapshot of a signal's demand and phase, sent to every peer.
    """
    sender_id: str = Field(..., min_length=1, description="Identifier of the emitting signal")
    car_count: int = Field(..., description="Sender's waiting cars at emission time")
    pedestrian_count: int = Field(..., description="Sender's waiting pedestrians at emission time")
    sender_phase: Phase = Field(..., description="Sender's phase at emission time")

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class SignalSnapshot:
    """
    Consistent view of a signal's state, taken under its lock.
    """
    signal_id: str
    kind: SignalKind
    phase: Phase
    car_demand: int
    pedestrian_demand: int
    peers: FrozenSet[str] = frozenset()
    timeout_pending: bool = False

    def to_dict(self) -> dict:
        return {
            "signal_id": self.signal_id,
            "kind": self.kind.value,
            "phase": self.phase.value,
            "car_demand": self.car_demand,
            "pedestrian_demand": self.pedestrian_demand,
            "peers": sorted(self.peers),
            "timeout_pending": self.timeout_pending,
        }


@dataclass
class SignalEvent:
    """
    Observable record of something that happened to a signal.
    """
    signal_id: str
    kind: EventKind
    phase: Phase
    car_demand: int
    pedestrian_demand: int
    timestamp: float
    green_duration: Optional[int] = None  # time units, transitions to green only
    sender_id: Optional[str] = None  # receive events only
    sequence: int = 0  # per signal, increasing

    def to_dict(self) -> dict:
        return {
            "signal_id": self.signal_id,
            "event": self.kind.value,
            "phase": self.phase.value,
            "car_demand": self.car_demand,
            "pedestrian_demand": self.pedestrian_demand,
            "timestamp": self.timestamp,
            "green_duration": self.green_duration,
            "sender_id": self.sender_id,
            "sequence": self.sequence,
        }
