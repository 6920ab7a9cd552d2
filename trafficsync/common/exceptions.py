class TrafficSyncError(Exception):
    """Base exception for all trafficsync errors."""
    pass

class ConfigurationError(TrafficSyncError):
    """Raised when the intersection is wired or configured incorrectly."""
    pass

class SchedulerClosedError(TrafficSyncError):
    """Raised when work is scheduled on a scheduler that was shut down."""
    pass
