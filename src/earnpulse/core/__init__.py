"""Core utilities: logging, events, exceptions, dependencies."""

from earnpulse.core.events import Event, EventBus, EventType, Subscription
from earnpulse.core.exceptions import EarnPulseError
from earnpulse.core.logging import get_logger, setup_logging

__all__ = [
    "EarnPulseError",
    "Event",
    "EventBus",
    "EventType",
    "Subscription",
    "get_logger",
    "setup_logging",
]
