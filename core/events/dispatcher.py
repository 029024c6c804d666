"""
Storefront Event Bus — Dispatcher
===================================
Routes committed order state changes to registered subscribers
(notification delivery, analytics, fulfilment hooks).

Dispatch behavior:
1. Look up subscribers by event_type
2. Execute handlers sequentially
3. Catch and log each subscriber failure
4. Continue to the next subscriber

Dispatch is scheduled with transaction.on_commit: a subscriber never
runs inside, blocks, or rolls back the transaction that changed the order.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from django.db import transaction

from core.events.registry import SubscriberRegistry

logger = logging.getLogger("storefront.events")


@dataclass(frozen=True)
class DomainEvent:
    """A committed fact about an order, published after commit."""

    event_type: str
    tenant_id: uuid.UUID
    aggregate_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if not self.event_type or not isinstance(self.event_type, str):
            raise ValueError("event_type must be a non-empty string.")
        if not isinstance(self.tenant_id, uuid.UUID):
            raise ValueError("tenant_id must be UUID.")
        if not self.aggregate_id or not isinstance(self.aggregate_id, str):
            raise ValueError("aggregate_id must be a non-empty string.")


def dispatch(event: DomainEvent, registry: SubscriberRegistry) -> dict:
    """
    Dispatch an event to all registered subscribers.

    Returns a summary dict:
        {
            'event_type': str,
            'event_id': str,
            'subscribers_notified': int,
            'subscribers_failed': int,
            'failures': list[dict]
        }

    This function NEVER raises. Handler failures are caught, logged
    and reported.
    """
    event_type = event.event_type
    event_id = str(event.event_id)

    result = {
        "event_type": event_type,
        "event_id": event_id,
        "subscribers_notified": 0,
        "subscribers_failed": 0,
        "failures": [],
    }

    subscribers = registry.get_subscribers(event_type)
    if not subscribers:
        logger.debug(
            f"No subscribers for event type '{event_type}' "
            f"(event_id: {event_id})"
        )
        return result

    for handler, subscriber_name in subscribers:
        handler_name = getattr(handler, "__qualname__", str(handler))
        try:
            handler(event)
            result["subscribers_notified"] += 1
        except Exception as exc:
            result["subscribers_failed"] += 1
            result["failures"].append(
                {
                    "handler": handler_name,
                    "subscriber": subscriber_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                }
            )
            logger.error(
                f"Subscriber failed: {handler_name} for "
                f"{event_type} (event_id: {event_id}): {exc}",
                exc_info=True,
            )

    logger.info(
        f"Dispatch complete: {event_type} (event_id: {event_id}): "
        f"{result['subscribers_notified']} notified, "
        f"{result['subscribers_failed']} failed"
    )
    return result


def publish_after_commit(
    event: DomainEvent,
    registry: Optional[SubscriberRegistry],
) -> None:
    """
    Schedule dispatch for when the surrounding transaction commits.
    Outside a transaction Django runs the callback immediately.
    """
    if registry is None:
        return
    transaction.on_commit(lambda: dispatch(event, registry))
