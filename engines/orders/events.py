"""
Storefront Orders — Event Types and Payload Builders
======================================================
Published after commit so the notification collaborator can tell
buyers and owners what happened to an order.
"""

from __future__ import annotations

from typing import Optional

from core.events import DomainEvent
from engines.orders.models import Order, OrderStatus


# ══════════════════════════════════════════════════════════════
# EVENT TYPE CONSTANTS
# ══════════════════════════════════════════════════════════════

ORDER_PLACED_V1 = "orders.order.placed.v1"
ORDER_CANCEL_REQUESTED_V1 = "orders.order.cancel_requested.v1"
ORDER_CANCELED_V1 = "orders.order.canceled.v1"
ORDER_CANCEL_REJECTED_V1 = "orders.order.cancel_rejected.v1"
ORDER_COMPLETED_V1 = "orders.order.completed.v1"
ORDER_REJECTED_V1 = "orders.order.rejected.v1"
ORDER_REFUNDED_V1 = "orders.order.refunded.v1"

ORDER_EVENT_TYPES = (
    ORDER_PLACED_V1,
    ORDER_CANCEL_REQUESTED_V1,
    ORDER_CANCELED_V1,
    ORDER_CANCEL_REJECTED_V1,
    ORDER_COMPLETED_V1,
    ORDER_REJECTED_V1,
    ORDER_REFUNDED_V1,
)


def resolve_status_event_type(previous: str, current: str) -> str:
    if current == OrderStatus.PENDING and previous == OrderStatus.CANCEL_REQUESTED:
        return ORDER_CANCEL_REJECTED_V1
    return {
        OrderStatus.CANCEL_REQUESTED: ORDER_CANCEL_REQUESTED_V1,
        OrderStatus.CANCELED: ORDER_CANCELED_V1,
        OrderStatus.COMPLETED: ORDER_COMPLETED_V1,
        OrderStatus.REJECTED: ORDER_REJECTED_V1,
        OrderStatus.REFUNDED: ORDER_REFUNDED_V1,
    }[current]


# ══════════════════════════════════════════════════════════════
# PAYLOAD BUILDERS
# ══════════════════════════════════════════════════════════════

def build_order_placed_event(order: Order) -> DomainEvent:
    return DomainEvent(
        event_type=ORDER_PLACED_V1,
        tenant_id=order.tenant_id,
        aggregate_id=str(order.id),
        payload={
            "order_id": str(order.id),
            "order_code": order.code,
            "user_id": order.user_id,
            "total_amount": str(order.total_amount),
            "payment_method": order.payment_method,
            "status": order.status,
        },
    )


def build_status_changed_event(
    order: Order,
    previous: str,
    current: str,
    *,
    reason: Optional[str] = None,
) -> DomainEvent:
    return DomainEvent(
        event_type=resolve_status_event_type(previous, current),
        tenant_id=order.tenant_id,
        aggregate_id=str(order.id),
        payload={
            "order_id": str(order.id),
            "order_code": order.code,
            "user_id": order.user_id,
            "previous_status": previous,
            "status": current,
            "reason": reason,
        },
    )
