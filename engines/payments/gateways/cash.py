"""
Storefront Payments — Cash / Offline Gateway
==============================================
No external call. create_payment() returns a synthetic reference and
OFFLINE_PENDING; the owner (or a POS) later confirms the payment with a
signed callback, or through the cash-paid order endpoint.

Callback body:
    {"reference": "CASH-…", "status": "PAID" | "FAILED",
     "amount": "38.00", "event_id": "…"}
Header X-Storefront-Signature = hex HMAC-SHA256(body, callback_secret).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from core.errors import MalformedCallbackError
from engines.payments.config import CASH, CashConfig, parse_gateway_config
from engines.payments.gateways.base import (
    CallbackNotice,
    CallbackOutcome,
    CreatePaymentCommand,
    PaymentGateway,
    PaymentStartResult,
    StartStatus,
    header_value,
    load_json_body,
    verify_hmac_signature,
)

SIGNATURE_HEADER = "X-Storefront-Signature"

_OUTCOMES = {
    "PAID": CallbackOutcome.SUCCEEDED,
    "FAILED": CallbackOutcome.FAILED,
}


def cash_reference(command: CreatePaymentCommand) -> str:
    return f"CASH-{command.transaction_id.hex[:12].upper()}"


class CashGateway(PaymentGateway):
    code = CASH
    display_name = "Cash on delivery"

    def parse_config(self, raw: Optional[Mapping[str, Any]]) -> CashConfig:
        return parse_gateway_config(CASH, raw)

    def public_checkout_config(self, config: CashConfig) -> dict:
        return {"instructions": config.instructions}

    def create_payment(self, command: CreatePaymentCommand, config: CashConfig) -> PaymentStartResult:
        return PaymentStartResult(
            provider_reference=cash_reference(command),
            status=StartStatus.OFFLINE_PENDING,
            instructions=config.instructions or "Pay on delivery.",
            raw={"order_code": command.order_code},
        )

    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> CallbackNotice:
        payload = load_json_body(raw_body, CASH)
        reference = payload.get("reference")
        if not reference or not isinstance(reference, str):
            raise MalformedCallbackError(
                "Cash callback has no reference.",
                details={"provider_code": CASH},
            )
        status = str(payload.get("status") or "").upper()
        outcome = _OUTCOMES.get(status, CallbackOutcome.IGNORED)

        amount = None
        if payload.get("amount") is not None:
            try:
                amount = Decimal(str(payload["amount"]))
            except (InvalidOperation, ValueError):
                raise MalformedCallbackError(
                    "Cash callback amount is not a number.",
                    details={"provider_code": CASH, "reference": reference},
                ) from None

        return CallbackNotice(
            provider_reference=reference,
            outcome=outcome,
            event_id=str(payload.get("event_id") or ""),
            amount=amount,
            failure_reason=str(payload.get("reason") or ""),
            raw=payload,
        )

    def verify_callback(self, raw_body: bytes, headers: Mapping[str, str], config: CashConfig) -> bool:
        return verify_hmac_signature(
            raw_body,
            header_value(headers, SIGNATURE_HEADER),
            config.callback_secret,
        )
