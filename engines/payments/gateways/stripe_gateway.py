"""
Storefront Payments — Stripe Gateway
======================================
Card payments through Stripe PaymentIntents on the platform account,
transferred to the tenant's connected account minus the platform fee.

The client confirms the intent with client_secret; the order advances
only when payment_intent.succeeded is reconciled.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

import stripe

from core.config import StorefrontSettings
from core.errors import MalformedCallbackError, PaymentDeclinedError
from engines.payments.config import STRIPE, StripeConfig, parse_gateway_config
from engines.payments.gateways.base import (
    AuthenticationError,
    CallbackNotice,
    CallbackOutcome,
    CreatePaymentCommand,
    IntegrationError,
    PaymentGateway,
    PaymentStartResult,
    StartStatus,
    TransientError,
    header_value,
    load_json_body,
)

logger = logging.getLogger("storefront.payments")

SIGNATURE_HEADER = "Stripe-Signature"

ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA",
        "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
    }
)

_INTENT_STATUS = {
    "requires_payment_method": StartStatus.REQUIRES_ACTION,
    "requires_confirmation": StartStatus.REQUIRES_ACTION,
    "requires_action": StartStatus.REQUIRES_ACTION,
}

_EVENT_OUTCOMES = {
    "payment_intent.succeeded": CallbackOutcome.SUCCEEDED,
    "payment_intent.payment_failed": CallbackOutcome.FAILED,
    "payment_intent.canceled": CallbackOutcome.FAILED,
}


def to_minor_units(amount: Decimal, currency: str) -> int:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: int, currency: str) -> Decimal:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(value).quantize(Decimal("0.01"))
    return (Decimal(value) / 100).quantize(Decimal("0.01"))


class StripeGateway(PaymentGateway):
    code = STRIPE
    display_name = "Card"

    def __init__(self, *, settings: Optional[StorefrontSettings] = None, client=stripe):
        self._settings = settings or StorefrontSettings()
        self._stripe = client

    def parse_config(self, raw: Optional[Mapping[str, Any]]) -> StripeConfig:
        return parse_gateway_config(STRIPE, raw)

    def public_checkout_config(self, config: StripeConfig) -> dict:
        return {"publishable_key": config.publishable_key}

    def platform_fee(self, command: CreatePaymentCommand, config: StripeConfig) -> int:
        pct = config.platform_fee_pct
        if pct is None:
            pct = self._settings.stripe_platform_fee_pct
        return to_minor_units(command.amount * pct / Decimal("100"), command.currency)

    # ── payment creation ──────────────────────────────────────

    def create_payment(self, command: CreatePaymentCommand, config: StripeConfig) -> PaymentStartResult:
        params = {
            "amount": to_minor_units(command.amount, command.currency),
            "currency": command.currency.lower(),
            "automatic_payment_methods": {"enabled": True},
            "metadata": {
                "order_id": str(command.order_id),
                "order_code": command.order_code,
                "tenant_id": str(command.tenant_id),
                "transaction_id": str(command.transaction_id),
                **command.metadata,
            },
        }
        if config.connected_account_id:
            params["application_fee_amount"] = self.platform_fee(command, config)
            params["transfer_data"] = {"destination": config.connected_account_id}

        try:
            intent = self._stripe.PaymentIntent.create(
                api_key=config.secret_key,
                idempotency_key=command.idempotency_key,
                **params,
            )
        except stripe.CardError as e:
            raise PaymentDeclinedError(
                "Card payment was declined.",
                details={
                    "provider_code": STRIPE,
                    "decline_code": getattr(e, "code", None) or "card_declined",
                },
            ) from e
        except stripe.AuthenticationError as e:
            raise AuthenticationError(
                "Stripe rejected the tenant's API key.", provider_code=STRIPE,
            ) from e
        except (stripe.APIConnectionError, stripe.RateLimitError) as e:
            raise TransientError(
                f"Stripe unavailable: {type(e).__name__}", provider_code=STRIPE,
            ) from e
        except stripe.StripeError as e:
            logger.warning(f"Stripe refused PaymentIntent for {command.order_code}: {e}")
            raise PaymentDeclinedError(
                "Card payment could not be created.",
                details={"provider_code": STRIPE},
            ) from e

        return PaymentStartResult(
            provider_reference=intent["id"],
            status=_INTENT_STATUS.get(intent.get("status"), StartStatus.CREATED),
            client_secret=intent.get("client_secret"),
            raw={"id": intent["id"], "status": intent.get("status")},
        )

    def cancel_payment(self, provider_reference: str, config: StripeConfig) -> None:
        try:
            self._stripe.PaymentIntent.cancel(provider_reference, api_key=config.secret_key)
        except stripe.AuthenticationError as e:
            raise AuthenticationError(
                "Stripe rejected the tenant's API key.", provider_code=STRIPE,
            ) from e
        except (stripe.APIConnectionError, stripe.RateLimitError) as e:
            raise TransientError(
                f"Stripe unavailable: {type(e).__name__}", provider_code=STRIPE,
            ) from e
        except stripe.StripeError as e:
            raise IntegrationError(
                f"Stripe could not cancel {provider_reference}: {e}", provider_code=STRIPE,
            ) from e

    # ── callbacks ─────────────────────────────────────────────

    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> CallbackNotice:
        event = load_json_body(raw_body, STRIPE)
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object")
        if not event_type or not isinstance(obj, dict):
            raise MalformedCallbackError(
                "Stripe event has no type or data.object.",
                details={"provider_code": STRIPE},
            )

        outcome = _EVENT_OUTCOMES.get(event_type, CallbackOutcome.IGNORED)
        amount = None
        failure_reason = ""
        if outcome == CallbackOutcome.SUCCEEDED and obj.get("amount_received") is not None:
            amount = from_minor_units(int(obj["amount_received"]), obj.get("currency") or "")
        if outcome == CallbackOutcome.FAILED:
            error = obj.get("last_payment_error") or {}
            failure_reason = error.get("message") or event_type

        return CallbackNotice(
            provider_reference=str(obj.get("id") or ""),
            outcome=outcome,
            event_id=str(event.get("id") or ""),
            amount=amount,
            failure_reason=failure_reason,
            raw={"type": event_type, "id": event.get("id"), "object_id": obj.get("id")},
        )

    def verify_callback(self, raw_body: bytes, headers: Mapping[str, str], config: StripeConfig) -> bool:
        signature = header_value(headers, SIGNATURE_HEADER)
        if not config.webhook_secret or not signature:
            return False
        try:
            self._stripe.Webhook.construct_event(raw_body, signature, config.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Stripe webhook signature invalid: {e}")
            return False
        return True
