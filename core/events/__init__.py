"""
Storefront Event Bus — Public API
===================================
Orders change state inside a transaction; subscribers hear about it
only after that transaction commits.
"""

from core.events.dispatcher import DomainEvent, dispatch, publish_after_commit
from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
)
from core.events.registry import SubscriberRegistry

__all__ = [
    "DomainEvent",
    "dispatch",
    "publish_after_commit",
    "SubscriberRegistry",
    "EventBusError",
    "InvalidEventTypeFormat",
    "DuplicateSubscriberError",
]
