from .event_broadcaster import EventBroadcaster, ALL_SIGNALS
