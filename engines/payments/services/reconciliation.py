"""
Storefront Payments — Reconciliation Handler
==============================================
Consumes asynchronous provider callbacks:

    parse → find transaction by (provider, reference) → verify signature
          → apply under a row lock with a status-guarded compare-and-swap

A success is never applied to an attempt the store voided, nor past
the order total; those are logged for refund. Replays are no-ops.
Callbacks for unknown references, unverifiable signatures and
irrelevant event types are logged and discarded, never raised. Only
a body that cannot be parsed at all propagates (MalformedCallbackError)
so the provider sees a 400.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Mapping, Optional

from django.db import transaction

from core.errors import (
    GatewayConfigError,
    NotFoundError,
    UnknownCallbackError,
)
from core.time.clock import Clock, SystemClock
from engines.orders.models import Order
from engines.orders.services.lifecycle import OrderLifecycleService
from engines.payments.config import CASH
from engines.payments.gateways.base import (
    CallbackNotice,
    CallbackOutcome,
    GatewayRegistry,
    IntegrationError,
)
from engines.payments.models import PaymentTransaction, TransactionStatus
from engines.payments.services.methods import PaymentMethodDirectory
from engines.payments.services.summary import paid_amount_for_order
from engines.pricing.rules import to_money

logger = logging.getLogger("storefront.reconciliation")


class ReconcileOutcome:
    APPLIED = "APPLIED"
    DUPLICATE = "DUPLICATE"
    IGNORED = "IGNORED"
    DISCARDED = "DISCARDED"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: str
    reason: str = ""
    transaction_id: Optional[uuid.UUID] = None
    transaction_status: Optional[str] = None
    order_status: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "reason": self.reason,
            "transaction_id": (
                None if self.transaction_id is None else str(self.transaction_id)
            ),
            "transaction_status": self.transaction_status,
            "order_status": self.order_status,
        }


class ReconciliationHandler:

    def __init__(
        self,
        registry: GatewayRegistry,
        directory: PaymentMethodDirectory,
        lifecycle: OrderLifecycleService,
        *,
        clock: Optional[Clock] = None,
    ):
        self._registry = registry
        self._directory = directory
        self._lifecycle = lifecycle
        self._clock = clock or SystemClock()

    # ══════════════════════════════════════════════════════════
    # PROVIDER CALLBACKS
    # ══════════════════════════════════════════════════════════

    def reconcile(
        self,
        provider_code: str,
        raw_body: bytes,
        headers: Mapping[str, str],
    ) -> ReconcileResult:
        gateway = self._registry.get(provider_code)
        if gateway is None:
            logger.warning(f"Callback for unknown provider '{provider_code}' discarded")
            return ReconcileResult(ReconcileOutcome.DISCARDED, "UNKNOWN_PROVIDER")

        notice = gateway.parse_callback(raw_body, headers)
        if not notice.provider_reference:
            logger.info(f"{gateway.code} callback without reference ignored")
            return ReconcileResult(ReconcileOutcome.IGNORED, "NO_REFERENCE")

        tx = PaymentTransaction.objects.filter(
            provider_code=gateway.code,
            provider_reference=notice.provider_reference,
        ).first()
        if tx is None:
            error = UnknownCallbackError(gateway.code, notice.provider_reference)
            logger.warning(f"{error.message} Discarded.")
            return ReconcileResult(ReconcileOutcome.DISCARDED, error.code)

        try:
            config = self._directory.config_for(tx.tenant_id, gateway)
        except GatewayConfigError as exc:
            logger.warning(f"Cannot verify {gateway.code} callback: {exc.message}")
            return ReconcileResult(
                ReconcileOutcome.DISCARDED, exc.code, transaction_id=tx.id,
            )

        if not gateway.verify_callback(raw_body, headers, config):
            logger.warning(
                f"{gateway.code} callback for {notice.provider_reference} "
                f"failed signature verification; discarded"
            )
            return ReconcileResult(
                ReconcileOutcome.DISCARDED, "SIGNATURE_INVALID", transaction_id=tx.id,
            )

        if notice.outcome == CallbackOutcome.IGNORED:
            return ReconcileResult(
                ReconcileOutcome.IGNORED,
                "EVENT_NOT_RELEVANT",
                transaction_id=tx.id,
                transaction_status=tx.status,
            )

        if notice.outcome == CallbackOutcome.APPROVED:
            if tx.status == TransactionStatus.PAID:
                return ReconcileResult(
                    ReconcileOutcome.DUPLICATE,
                    transaction_id=tx.id,
                    transaction_status=tx.status,
                )
            if tx.is_voided:
                return self._refuse_voided(tx)
            try:
                captured = gateway.capture(notice.provider_reference, config)
            except IntegrationError as exc:
                logger.error(
                    f"{gateway.code} capture failed for {notice.provider_reference}: {exc}",
                    exc_info=True,
                )
                return ReconcileResult(
                    ReconcileOutcome.DISCARDED, "CAPTURE_FAILED", transaction_id=tx.id,
                )
            if captured is None:
                return ReconcileResult(
                    ReconcileOutcome.IGNORED,
                    "AWAITING_CAPTURE",
                    transaction_id=tx.id,
                    transaction_status=tx.status,
                )
            notice = captured

        return self.apply_notice(tx.id, notice)

    # ══════════════════════════════════════════════════════════
    # STATE APPLICATION (serialized per transaction)
    # ══════════════════════════════════════════════════════════

    def apply_notice(self, transaction_id: uuid.UUID, notice: CallbackNotice) -> ReconcileResult:
        order_id = (
            PaymentTransaction.objects.filter(pk=transaction_id)
            .values_list("order_id", flat=True)
            .get()
        )
        with transaction.atomic():
            # Order before transaction, the same order lifecycle locks in.
            Order.objects.select_for_update().filter(pk=order_id).first()
            tx = PaymentTransaction.objects.select_for_update().get(pk=transaction_id)

            if notice.outcome == CallbackOutcome.SUCCEEDED:
                return self._apply_success(tx, notice)
            if notice.outcome == CallbackOutcome.FAILED:
                return self._apply_failure(tx, notice)

        return ReconcileResult(
            ReconcileOutcome.IGNORED, notice.outcome, transaction_id=transaction_id,
        )

    def _apply_success(self, tx: PaymentTransaction, notice: CallbackNotice) -> ReconcileResult:
        if tx.status == TransactionStatus.PAID:
            logger.info(f"Duplicate success for {tx.provider_code} {tx.provider_reference}")
            return ReconcileResult(
                ReconcileOutcome.DUPLICATE,
                transaction_id=tx.id,
                transaction_status=tx.status,
                order_status=tx.order.status,
            )
        if tx.is_voided:
            return self._refuse_voided(tx)
        if notice.amount is not None and to_money(notice.amount) != tx.amount:
            logger.warning(
                f"{tx.provider_code} {tx.provider_reference} reports "
                f"{to_money(notice.amount)}, expected {tx.amount}; not applied"
            )
            return ReconcileResult(
                ReconcileOutcome.DISCARDED,
                "AMOUNT_MISMATCH",
                transaction_id=tx.id,
                transaction_status=tx.status,
            )
        total = to_money(tx.order.total_amount)
        paid = paid_amount_for_order(tx.order_id)
        if paid + tx.amount > total:
            logger.error(
                f"{tx.provider_code} {tx.provider_reference} would take order "
                f"{tx.order.code} to {paid + tx.amount} of {total}; not applied, "
                f"refund required"
            )
            return ReconcileResult(
                ReconcileOutcome.DISCARDED,
                "OVERPAYMENT",
                transaction_id=tx.id,
                transaction_status=tx.status,
                order_status=tx.order.status,
            )

        self._swap(tx, TransactionStatus.PAID, notice)
        order_status = self._lifecycle.complete_from_payment(tx.order_id)
        logger.info(
            f"Payment confirmed: {tx.provider_code} {tx.provider_reference} "
            f"→ order {order_status}"
        )
        return ReconcileResult(
            ReconcileOutcome.APPLIED,
            transaction_id=tx.id,
            transaction_status=TransactionStatus.PAID,
            order_status=order_status,
        )

    def _apply_failure(self, tx: PaymentTransaction, notice: CallbackNotice) -> ReconcileResult:
        if tx.status == TransactionStatus.FAILED:
            return ReconcileResult(
                ReconcileOutcome.DUPLICATE,
                transaction_id=tx.id,
                transaction_status=tx.status,
            )
        if tx.status == TransactionStatus.PAID:
            logger.warning(
                f"Failure for already paid {tx.provider_code} "
                f"{tx.provider_reference} ignored"
            )
            return ReconcileResult(
                ReconcileOutcome.IGNORED,
                "ALREADY_PAID",
                transaction_id=tx.id,
                transaction_status=tx.status,
            )

        self._swap(tx, TransactionStatus.FAILED, notice)
        logger.info(
            f"Payment failed: {tx.provider_code} {tx.provider_reference} "
            f"({notice.failure_reason or 'no reason'}); order stays {tx.order.status}"
        )
        return ReconcileResult(
            ReconcileOutcome.APPLIED,
            transaction_id=tx.id,
            transaction_status=TransactionStatus.FAILED,
            order_status=tx.order.status,
        )

    def _refuse_voided(self, tx: PaymentTransaction) -> ReconcileResult:
        logger.error(
            f"Success for voided {tx.provider_code} {tx.provider_reference} "
            f"({tx.failure_reason}) on order {tx.order.code}; not applied, "
            f"refund required"
        )
        return ReconcileResult(
            ReconcileOutcome.DISCARDED,
            "ATTEMPT_VOIDED",
            transaction_id=tx.id,
            transaction_status=tx.status,
            order_status=tx.order.status,
        )

    def _swap(self, tx: PaymentTransaction, target: str, notice: CallbackNotice) -> None:
        changes = {
            "status": target,
            "last_event_id": notice.event_id[:255],
            "updated_at": self._clock.now_utc(),
        }
        if notice.raw:
            changes["raw_provider_payload"] = notice.raw
        if target == TransactionStatus.FAILED:
            changes["failure_reason"] = (notice.failure_reason or "")[:255]
        else:
            changes["failure_reason"] = ""
        PaymentTransaction.objects.filter(pk=tx.pk, status=tx.status).update(**changes)

    # ══════════════════════════════════════════════════════════
    # OFFLINE CONFIRMATION
    # ══════════════════════════════════════════════════════════

    def mark_cash_paid(self, order_id: uuid.UUID, tenant_id: uuid.UUID) -> ReconcileResult:
        """Owner confirms the cash was received. Replays are no-ops."""
        tx = (
            PaymentTransaction.objects.filter(
                order_id=order_id, tenant_id=tenant_id, provider_code=CASH,
            )
            .exclude(status=TransactionStatus.FAILED)
            .order_by("-created_at", "-updated_at")
            .first()
        )
        if tx is None:
            raise NotFoundError(
                f"Order {order_id} has no cash payment to confirm.",
                details={"order_id": str(order_id)},
            )
        notice = CallbackNotice(
            provider_reference=tx.provider_reference or "",
            outcome=CallbackOutcome.SUCCEEDED,
            event_id=f"owner-confirmed-{tx.id}",
            amount=tx.amount,
        )
        return self.apply_notice(tx.id, notice)
