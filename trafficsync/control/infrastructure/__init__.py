"""
Infrastructure module initialization.
"""
from .scheduling import ThreadPoolScheduler, VirtualScheduler, ScheduledCall
from .broadcast import EventBroadcaster, ALL_SIGNALS
