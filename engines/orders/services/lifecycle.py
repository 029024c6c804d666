"""
Storefront Orders — Lifecycle Service
=======================================
Every order status change goes through _transition():

- the order row is locked (select_for_update)
- transition_policy must accept current → target
- the write is a compare-and-swap on the status it read
- stock is restored when a reservation is given up unpaid, and the
  order's open payment attempts are voided with it
- subscribers are notified after commit
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

from django.db import transaction

from core.config import StorefrontSettings
from core.errors import ForbiddenError, InvalidTransitionError, NotFoundError
from core.events import SubscriberRegistry, publish_after_commit
from core.time.clock import Clock, SystemClock
from engines.catalog.stock import restore_stock
from engines.orders.events import build_status_changed_event
from engines.orders.models import Order, OrderLine, OrderStatus
from engines.orders.policies import (
    is_terminal,
    order_owner_policy,
    transition_policy,
)

logger = logging.getLogger("storefront.orders")

_TIMESTAMP_FIELD = {
    OrderStatus.CANCEL_REQUESTED: "cancel_requested_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELED: "canceled_at",
    OrderStatus.REJECTED: "rejected_at",
    OrderStatus.REFUNDED: "refunded_at",
}

RESERVATION_EXPIRED = "RESERVATION_EXPIRED"


def _default_paid_amount(order_id: uuid.UUID) -> Decimal:
    from engines.payments.services.summary import paid_amount_for_order

    return paid_amount_for_order(order_id)


def _default_void_attempts(order_id: uuid.UUID, reason: str, now: datetime) -> None:
    from engines.payments.services.orchestrator import void_open_attempts

    void_open_attempts(order_id, reason, now=now)


class OrderLifecycleService:

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        event_registry: Optional[SubscriberRegistry] = None,
        settings: Optional[StorefrontSettings] = None,
        paid_amount_lookup: Optional[Callable[[uuid.UUID], Decimal]] = None,
        attempt_voider: Optional[Callable[[uuid.UUID, str, datetime], None]] = None,
    ):
        self._clock = clock or SystemClock()
        self._event_registry = event_registry
        self._settings = settings or StorefrontSettings()
        self._paid_amount = paid_amount_lookup or _default_paid_amount
        self._void_attempts = attempt_voider or _default_void_attempts

    # ══════════════════════════════════════════════════════════
    # READS
    # ══════════════════════════════════════════════════════════

    def get_order(
        self,
        order_id: uuid.UUID,
        *,
        tenant_id: Optional[uuid.UUID] = None,
    ) -> Order:
        qs = Order.objects.select_related("currency").filter(pk=order_id)
        if tenant_id is not None:
            qs = qs.filter(tenant_id=tenant_id)
        order = qs.first()
        if order is None:
            raise NotFoundError(
                f"Order {order_id} not found.",
                details={"order_id": str(order_id)},
            )
        return order

    def is_fully_paid(self, order: Order) -> bool:
        if order.total_amount <= 0:
            return True
        return self._paid_amount(order.id) >= order.total_amount

    # ══════════════════════════════════════════════════════════
    # BUYER / OWNER OPERATIONS
    # ══════════════════════════════════════════════════════════

    def request_cancel(
        self, order_id: uuid.UUID, user_id: str, *, tenant_id=None,
    ) -> Order:
        return self._transition(
            order_id,
            OrderStatus.CANCEL_REQUESTED,
            tenant_id=tenant_id,
            buyer_id=user_id,
        )

    def approve_cancel(self, order_id: uuid.UUID, tenant_id: uuid.UUID) -> Order:
        return self._transition(
            order_id,
            OrderStatus.CANCELED,
            tenant_id=tenant_id,
            restore_if_unpaid=True,
        )

    def reject_cancel(self, order_id: uuid.UUID, tenant_id: uuid.UUID) -> Order:
        return self._transition(order_id, OrderStatus.PENDING, tenant_id=tenant_id)

    def mark_refunded(self, order_id: uuid.UUID, tenant_id: uuid.UUID) -> Order:
        return self._transition(order_id, OrderStatus.REFUNDED, tenant_id=tenant_id)

    def owner_reject(
        self,
        order_id: uuid.UUID,
        tenant_id: uuid.UUID,
        *,
        reason: Optional[str] = None,
    ) -> Order:
        return self._transition(
            order_id,
            OrderStatus.REJECTED,
            tenant_id=tenant_id,
            restore_if_unpaid=True,
            reason=reason,
        )

    # ══════════════════════════════════════════════════════════
    # PAYMENT-DRIVEN COMPLETION (called by reconciliation only)
    # ══════════════════════════════════════════════════════════

    def complete_from_payment(self, order_id: uuid.UUID) -> str:
        """
        PENDING → COMPLETED once the order is fully paid.
        Anything else is left alone and the current status returned.
        """
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order_id)
            if order.status != OrderStatus.PENDING:
                if is_terminal(order.status):
                    logger.info(
                        f"Payment confirmed for {order.code}, "
                        f"already {order.status}; nothing to do"
                    )
                else:
                    logger.warning(
                        f"Payment confirmed for {order.code} while "
                        f"{order.status}; owner must settle it"
                    )
                return order.status
            if not self.is_fully_paid(order):
                logger.info(f"Order {order.code} partially paid; stays PENDING")
                return order.status
            self._apply(order, OrderStatus.COMPLETED, reason="PAYMENT_CONFIRMED")
            return OrderStatus.COMPLETED

    # ══════════════════════════════════════════════════════════
    # RESERVATION EXPIRY
    # ══════════════════════════════════════════════════════════

    def release_abandoned_orders(
        self,
        now: Optional[datetime] = None,
        *,
        tenant_id: Optional[uuid.UUID] = None,
    ) -> list[uuid.UUID]:
        """
        Reject PENDING orders older than the reservation window that
        have no PAID transaction, give their stock back and void their
        open payment attempts. A provider success arriving later is
        refused by reconciliation.
        """
        timeout = self._settings.reservation_timeout_minutes
        if not timeout:
            return []
        now = now or self._clock.now_utc()
        cutoff = now - timedelta(minutes=timeout)

        candidates = Order.objects.filter(
            status=OrderStatus.PENDING,
            created_at__lt=cutoff,
        )
        if tenant_id is not None:
            candidates = candidates.filter(tenant_id=tenant_id)

        released = []
        for order_id in candidates.values_list("id", flat=True):
            if self._paid_amount(order_id) > 0:
                continue
            try:
                self._transition(
                    order_id,
                    OrderStatus.REJECTED,
                    restore_if_unpaid=True,
                    reason=RESERVATION_EXPIRED,
                    expected_status=OrderStatus.PENDING,
                )
            except InvalidTransitionError:
                # Paid or cancelled since the scan.
                continue
            released.append(order_id)

        if released:
            logger.info(f"Released {len(released)} abandoned order(s)")
        return released

    # ══════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════

    def _transition(
        self,
        order_id: uuid.UUID,
        target: str,
        *,
        tenant_id: Optional[uuid.UUID] = None,
        buyer_id: Optional[str] = None,
        restore_if_unpaid: bool = False,
        reason: Optional[str] = None,
        expected_status: Optional[str] = None,
    ) -> Order:
        with transaction.atomic():
            qs = Order.objects.select_for_update().filter(pk=order_id)
            if tenant_id is not None:
                qs = qs.filter(tenant_id=tenant_id)
            order = qs.first()
            if order is None:
                raise NotFoundError(
                    f"Order {order_id} not found.",
                    details={"order_id": str(order_id)},
                )

            if buyer_id is not None:
                rejection = order_owner_policy(order, buyer_id)
                if rejection is not None:
                    raise ForbiddenError.from_rejection(
                        rejection, order_id=str(order_id),
                    )

            if expected_status is not None and order.status != expected_status:
                raise InvalidTransitionError(
                    f"Order {order.code} is no longer {expected_status}.",
                    details={"order_id": str(order_id), "status": order.status},
                )

            rejection = transition_policy(order.status, target)
            if rejection is not None:
                raise InvalidTransitionError.from_rejection(
                    rejection, order_id=str(order_id), status=order.status,
                )

            if restore_if_unpaid and not self.is_fully_paid(order):
                restore_stock(
                    {
                        line.item_id: line.quantity
                        for line in OrderLine.objects.filter(order=order)
                    }
                )
                logger.info(f"Stock restored for order {order.code}")
            if restore_if_unpaid:
                self._void_attempts(order.id, reason or target, self._clock.now_utc())

            self._apply(order, target, reason=reason)
        return order

    def _apply(self, order: Order, target: str, *, reason: Optional[str]) -> None:
        previous = order.status
        now = self._clock.now_utc()
        changes = {"status": target, "updated_at": now}
        stamp = _TIMESTAMP_FIELD.get(target)
        if stamp is not None:
            changes[stamp] = now

        updated = Order.objects.filter(pk=order.pk, status=previous).update(**changes)
        if updated != 1:
            raise InvalidTransitionError(
                f"Order {order.code} changed concurrently.",
                details={"order_id": str(order.pk)},
            )
        for field_name, value in changes.items():
            setattr(order, field_name, value)

        publish_after_commit(
            build_status_changed_event(order, previous, target, reason=reason),
            self._event_registry,
        )
        logger.info(f"Order {order.code}: {previous} → {target}")
