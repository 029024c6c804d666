"""
Storefront Payments — Payment Summary
=======================================
Read-side view of what has been paid against an order.

The current authoritative transaction is the most recent one whose
status is not FAILED.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db.models import Sum

from engines.payments.models import PaymentTransaction, TransactionStatus
from engines.pricing.rules import ZERO, to_money


class PaymentState:
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    UNPAID = "UNPAID"


def paid_amount_for_order(order_id: uuid.UUID) -> Decimal:
    total = PaymentTransaction.objects.filter(
        order_id=order_id, status=TransactionStatus.PAID,
    ).aggregate(total=Sum("amount"))["total"]
    return to_money(total or ZERO)


def current_transaction(order_id: uuid.UUID) -> Optional[PaymentTransaction]:
    return (
        PaymentTransaction.objects.filter(order_id=order_id)
        .exclude(status=TransactionStatus.FAILED)
        .order_by("-created_at", "-updated_at")
        .first()
    )


@dataclass(frozen=True)
class PaymentSummary:
    order_id: uuid.UUID
    total: Decimal
    paid: Decimal
    remaining: Decimal
    state: str
    current: Optional[PaymentTransaction] = None

    def to_dict(self) -> dict:
        current = self.current
        return {
            "order_id": str(self.order_id),
            "total": str(self.total),
            "paid": str(self.paid),
            "remaining": str(self.remaining),
            "state": self.state,
            "current_transaction": None if current is None else {
                "transaction_id": str(current.id),
                "provider_code": current.provider_code,
                "provider_reference": current.provider_reference,
                "amount": str(current.amount),
                "status": current.status,
            },
        }


def payment_summary(order) -> PaymentSummary:
    total = to_money(order.total_amount)
    paid = paid_amount_for_order(order.id)
    remaining = max(total - paid, ZERO)

    if total <= ZERO or paid >= total:
        state = PaymentState.PAID
    elif paid > ZERO:
        state = PaymentState.PARTIALLY_PAID
    else:
        state = PaymentState.UNPAID

    return PaymentSummary(
        order_id=order.id,
        total=total,
        paid=paid,
        remaining=remaining,
        state=state,
        current=current_transaction(order.id),
    )
