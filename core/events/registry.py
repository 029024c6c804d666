"""
Storefront Event Bus — Subscriber Registry
============================================
Controls which handlers hear about order state changes.

Rules:
- Event types follow engine.domain.action[.version] format
- Multiple subscribers per event type allowed
- Duplicate handler for the same event type forbidden
- In-memory only, thread-safe
"""

import logging
from threading import Lock
from typing import Callable

from core.events.errors import (
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
)

logger = logging.getLogger("storefront.events")


class SubscriberRegistry:
    """
    In-memory registry of event subscribers.

    Each entry maps an event_type to a list of
    (handler, subscriber_name) tuples.
    """

    def __init__(self):
        self._subscribers: dict[str, list[tuple[Callable, str]]] = {}
        self._lock = Lock()

    @staticmethod
    def _validate_event_type_format(event_type: str) -> None:
        if not event_type or not isinstance(event_type, str):
            raise InvalidEventTypeFormat(event_type or "")

        parts = event_type.strip().split(".")
        if len(parts) < 3 or not all(parts):
            raise InvalidEventTypeFormat(event_type)

    def register_subscriber(
        self,
        event_type: str,
        handler: Callable,
        subscriber_name: str,
    ) -> None:
        """
        Register a handler for an event type.

        Raises:
            InvalidEventTypeFormat:   Bad event type format
            DuplicateSubscriberError: Handler already registered
        """
        self._validate_event_type_format(event_type)

        if not callable(handler):
            raise EventBusError(
                f"Handler must be callable, got {type(handler)}."
            )

        handler_name = getattr(handler, "__qualname__", str(handler))

        with self._lock:
            handlers = self._subscribers.setdefault(event_type, [])
            for existing_handler, _ in handlers:
                if existing_handler is handler:
                    raise DuplicateSubscriberError(event_type, handler_name)
            handlers.append((handler, subscriber_name))

        logger.info(
            f"Subscriber registered: {handler_name} → {event_type} "
            f"(subscriber: {subscriber_name})"
        )

    def get_subscribers(self, event_type: str) -> list[tuple[Callable, str]]:
        """Returns an empty list when nobody listens (not an error)."""
        with self._lock:
            return list(self._subscribers.get(event_type, []))

    def subscriber_count(self, event_type: str) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, []))
