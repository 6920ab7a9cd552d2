from dataclasses import dataclass, field
from typing import List, Optional

from omegaconf import MISSING

@dataclass
class SignalSpec:
    id: str = MISSING
    vehicle: bool = True

@dataclass
class SchedulerConfig:
    type: str = "thread_pool"  # thread_pool | virtual
    max_workers: int = 4
    time_unit_seconds: float = 1.0

@dataclass
class BroadcastConfig:
    enabled: bool = True
    log_events: bool = False

@dataclass
class LoggingConfig:
    level: str = "INFO"

@dataclass
class IntersectionConfig:
    name: str = "intersection"
    vehicle_signals: int = 4
    pedestrian_signals: int = 8
    signals: List[SignalSpec] = field(default_factory=list)  # Explicit list replaces the counts above
    tick_interval: float = 2.0
    duration: Optional[float] = None  # Time units; None runs until interrupted
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

@dataclass
class AppConfig:
    intersection: IntersectionConfig = field(default_factory=IntersectionConfig)
