"""
SurvivorPool Services

Event hub and outbound notification delivery.
"""

from services.event_bus import EventBus
from services.notifications import LoggingSink, NotificationDispatcher, NotificationSink

__all__ = ["EventBus", "LoggingSink", "NotificationDispatcher", "NotificationSink"]
