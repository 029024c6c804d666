"""
Storefront Payments — Payment Orchestrator
============================================
Starts one payment attempt for a committed, PENDING order:

1. resolve the tenant's enabled gateway and typed config
2. lock the order, check it is payable and the amount/currency match
3. void any earlier open attempt, insert a CREATED PaymentTransaction
   and commit
4. call the provider outside any transaction (voided attempts are
   cancelled with their provider first)
5. record the provider reference and immediate status
   (CREATED / REQUIRES_ACTION / OFFLINE_PENDING), or FAILED on decline

The orchestrator never changes the order's status. Only reconciliation
does, once the provider confirms the outcome.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from django.db import transaction

from core.errors import (
    GatewayConfigError,
    InvalidTransitionError,
    NotFoundError,
    PaymentDeclinedError,
    ValidationError,
)
from core.policy.rejection import ReasonCode
from core.time.clock import Clock, SystemClock
from engines.orders.models import Order
from engines.orders.policies import order_payable_policy
from engines.payments.gateways.base import CreatePaymentCommand, IntegrationError
from engines.payments.models import (
    OPEN_TRANSACTION_STATUSES,
    VOIDED_PREFIX,
    PaymentTransaction,
    TransactionStatus,
)
from engines.payments.services.methods import PaymentMethodDirectory
from engines.payments.services.summary import paid_amount_for_order
from engines.pricing.rules import ZERO, to_money

logger = logging.getLogger("storefront.payments")


@dataclass(frozen=True)
class StartedPayment:
    transaction_id: uuid.UUID
    provider_code: str
    provider_reference: str
    status: str
    amount: Decimal
    currency_code: str
    client_continuation: Optional[dict] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": str(self.transaction_id),
            "provider_code": self.provider_code,
            "provider_reference": self.provider_reference,
            "status": self.status,
            "amount": str(self.amount),
            "currency_code": self.currency_code,
            "client_continuation": self.client_continuation,
        }


# ══════════════════════════════════════════════════════════════
# VOIDING OPEN ATTEMPTS
# ══════════════════════════════════════════════════════════════

SUPERSEDED = "SUPERSEDED"


def void_open_attempts(
    order_id: uuid.UUID,
    reason: str,
    *,
    now: Optional[datetime] = None,
) -> list[PaymentTransaction]:
    """
    Move every open attempt of the order to FAILED with a VOIDED reason.
    Callers hold the order row lock. Returns the attempts as they were
    before voiding.
    """
    now = now or SystemClock().now_utc()
    open_attempts = list(
        PaymentTransaction.objects.select_for_update().filter(
            order_id=order_id, status__in=OPEN_TRANSACTION_STATUSES,
        )
    )
    voided = []
    for tx in open_attempts:
        updated = PaymentTransaction.objects.filter(pk=tx.pk, status=tx.status).update(
            status=TransactionStatus.FAILED,
            failure_reason=f"{VOIDED_PREFIX}{reason}"[:255],
            updated_at=now,
        )
        if updated == 1:
            voided.append(tx)
    if voided:
        logger.info(
            f"Voided {len(voided)} open payment attempt(s) for order {order_id} ({reason})"
        )
    return voided


class PaymentOrchestrator:

    def __init__(
        self,
        directory: PaymentMethodDirectory,
        *,
        clock: Optional[Clock] = None,
    ):
        self._directory = directory
        self._clock = clock or SystemClock()

    def start_payment(
        self,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        provider_code: str,
        *,
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
    ) -> StartedPayment:
        """
        Raises:
            NotFoundError:              order unknown for the tenant
            PaymentMethodDisabledError: method unknown or disabled
            InvalidTransitionError:     order not PENDING, or already paid
            ValidationError:            amount / currency differ from the order
            PaymentDeclinedError:       provider refused; transaction FAILED
        """
        if transaction.get_connection().in_atomic_block:
            raise RuntimeError(
                "start_payment must not run inside a transaction; "
                "providers are called only after the attempt is committed."
            )

        gateway, config = self._directory.require_enabled(tenant_id, provider_code)
        tx, superseded = self._open_attempt(
            tenant_id, order_id, gateway.code, amount, currency,
        )
        self._cancel_with_providers(tenant_id, superseded)

        command = CreatePaymentCommand(
            transaction_id=tx.id,
            order_id=tx.order_id,
            order_code=tx.order.code,
            tenant_id=tenant_id,
            amount=tx.amount,
            currency=tx.currency_code,
        )
        try:
            result = gateway.create_payment(command, config)
        except PaymentDeclinedError as exc:
            self._fail_attempt(tx, exc.message)
            exc.details.setdefault("transaction_id", str(tx.id))
            raise
        except IntegrationError as exc:
            logger.error(
                f"{gateway.code} error starting payment for {tx.order.code}",
                exc_info=True,
            )
            self._fail_attempt(tx, str(exc))
            raise PaymentDeclinedError(
                "Payment provider is unavailable, try again.",
                details={
                    "provider_code": gateway.code,
                    "transaction_id": str(tx.id),
                    "retryable": exc.retryable,
                },
            ) from exc

        updated = PaymentTransaction.objects.filter(
            pk=tx.pk, status=TransactionStatus.CREATED,
        ).update(
            provider_reference=result.provider_reference,
            status=result.status,
            raw_provider_payload=result.raw,
            updated_at=self._clock.now_utc(),
        )
        if updated != 1:
            # Voided while the provider was being called.
            PaymentTransaction.objects.filter(
                pk=tx.pk, provider_reference__isnull=True,
            ).update(provider_reference=result.provider_reference)
            tx.provider_reference = result.provider_reference
            self._cancel_with_providers(tenant_id, [tx])
            raise InvalidTransitionError(
                f"Payment attempt for {tx.order.code} was replaced or the order closed.",
                details={"order_id": str(tx.order_id), "transaction_id": str(tx.id)},
            )
        logger.info(
            f"Payment started: {gateway.code} {result.provider_reference} "
            f"for {tx.order.code} ({tx.amount} {tx.currency_code}) → {result.status}"
        )
        return StartedPayment(
            transaction_id=tx.id,
            provider_code=gateway.code,
            provider_reference=result.provider_reference,
            status=result.status,
            amount=tx.amount,
            currency_code=tx.currency_code,
            client_continuation=result.client_continuation,
        )

    # ── internals ─────────────────────────────────────────────

    def _open_attempt(
        self,
        tenant_id: uuid.UUID,
        order_id: uuid.UUID,
        provider_code: str,
        amount: Optional[Decimal],
        currency: Optional[str],
    ) -> tuple[PaymentTransaction, list[PaymentTransaction]]:
        with transaction.atomic():
            order = (
                Order.objects.select_for_update()
                .select_related("currency")
                .filter(pk=order_id, tenant_id=tenant_id)
                .first()
            )
            if order is None:
                raise NotFoundError(
                    f"Order {order_id} not found.",
                    details={"order_id": str(order_id)},
                )

            rejection = order_payable_policy(order)
            if rejection is not None:
                raise InvalidTransitionError.from_rejection(
                    rejection, order_id=str(order_id), status=order.status,
                )

            due = to_money(order.total_amount) - paid_amount_for_order(order.id)
            if due <= ZERO:
                raise InvalidTransitionError(
                    f"Order {order.code} is already paid.",
                    code=ReasonCode.ORDER_NOT_PAYABLE,
                    details={"order_id": str(order_id)},
                )
            if amount is not None and to_money(amount) != due:
                raise ValidationError(
                    f"Amount {to_money(amount)} does not match the {due} due.",
                    code=ReasonCode.AMOUNT_MISMATCH,
                    details={"expected": str(due), "actual": str(to_money(amount))},
                )
            currency_code = order.currency.code
            if currency is not None and currency.strip().upper() != currency_code:
                raise ValidationError(
                    f"Currency {currency} does not match order currency {currency_code}.",
                    code=ReasonCode.AMOUNT_MISMATCH,
                    details={"expected": currency_code, "actual": currency},
                )

            now = self._clock.now_utc()
            superseded = void_open_attempts(order.id, SUPERSEDED, now=now)
            tx = PaymentTransaction.objects.create(
                tenant_id=tenant_id,
                order=order,
                provider_code=provider_code,
                amount=due,
                currency_code=currency_code,
                status=TransactionStatus.CREATED,
                created_at=now,
                updated_at=now,
            )
        return tx, superseded

    def _cancel_with_providers(
        self, tenant_id: uuid.UUID, voided: list[PaymentTransaction],
    ) -> None:
        # A late success for a voided attempt is still refused by
        # reconciliation; a failed cancel only means a refund later.
        for old in voided:
            if not old.provider_reference:
                continue
            gateway = self._directory.registry.get(old.provider_code)
            if gateway is None:
                continue
            try:
                config = self._directory.config_for(tenant_id, gateway)
                gateway.cancel_payment(old.provider_reference, config)
            except (GatewayConfigError, IntegrationError) as exc:
                logger.warning(
                    f"Could not cancel superseded {old.provider_code} "
                    f"{old.provider_reference}: {exc}"
                )

    def _fail_attempt(self, tx: PaymentTransaction, reason: str) -> None:
        PaymentTransaction.objects.filter(
            pk=tx.pk, status=TransactionStatus.CREATED,
        ).update(
            status=TransactionStatus.FAILED,
            failure_reason=(reason or "")[:255],
            updated_at=self._clock.now_utc(),
        )
        logger.warning(f"Payment attempt {tx.id} for {tx.order.code} failed: {reason}")
