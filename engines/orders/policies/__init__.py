"""
Storefront Orders — Policies
==============================
The order/payment state machine and the checks guarding it.

    PENDING          → CANCEL_REQUESTED | COMPLETED | REJECTED
    CANCEL_REQUESTED → CANCELED | PENDING
    CANCELED         → REFUNDED

COMPLETED, REJECTED and REFUNDED are terminal.
"""

from __future__ import annotations

from typing import Optional

from core.policy.rejection import ReasonCode, RejectionReason
from engines.orders.models import OrderStatus


ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset(
        {
            OrderStatus.CANCEL_REQUESTED,
            OrderStatus.COMPLETED,
            OrderStatus.REJECTED,
        }
    ),
    OrderStatus.CANCEL_REQUESTED: frozenset(
        {OrderStatus.CANCELED, OrderStatus.PENDING}
    ),
    OrderStatus.CANCELED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Statuses whose stock reservation is still held.
RESERVING_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.CANCEL_REQUESTED, OrderStatus.COMPLETED}
)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def transition_policy(current: str, target: str) -> Optional[RejectionReason]:
    """None when current → target is an edge of the state machine."""
    if current not in ALLOWED_TRANSITIONS:
        return RejectionReason(
            code=ReasonCode.TRANSITION_NOT_ALLOWED,
            message=f"Unknown order status '{current}'.",
            policy_name="transition_policy",
        )
    if is_terminal(current):
        return RejectionReason(
            code=ReasonCode.ORDER_TERMINAL,
            message=f"Order is {current}; terminal orders never change status.",
            policy_name="transition_policy",
        )
    if target not in ALLOWED_TRANSITIONS[current]:
        return RejectionReason(
            code=ReasonCode.TRANSITION_NOT_ALLOWED,
            message=f"Order cannot move from {current} to {target}.",
            policy_name="transition_policy",
        )
    return None


def order_owner_policy(order, user_id: str) -> Optional[RejectionReason]:
    """Only the buyer may ask to cancel their own order."""
    if order.user_id != user_id:
        return RejectionReason(
            code=ReasonCode.NOT_ORDER_OWNER,
            message="Only the buyer can request cancellation of this order.",
            policy_name="order_owner_policy",
        )
    return None


def order_payable_policy(order) -> Optional[RejectionReason]:
    """Payments may only start while the order is PENDING."""
    if order.status != OrderStatus.PENDING:
        return RejectionReason(
            code=ReasonCode.ORDER_NOT_PAYABLE,
            message=f"Order {order.code} is {order.status} and cannot be paid.",
            policy_name="order_payable_policy",
        )
    return None
