"""
Storefront Payments — PayPal Gateway
======================================
Redirect-based wallet over the PayPal Orders v2 REST API (httpx).

    create_payment → POST /v2/checkout/orders (intent CAPTURE)
                     → buyer is redirected to the approve link
    CHECKOUT.ORDER.APPROVED   → capture() → POST …/orders/{id}/capture
    PAYMENT.CAPTURE.COMPLETED → payment succeeded

Every callback is authenticated with PayPal's
verify-webhook-signature API against the tenant's webhook_id.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

import httpx

from core.config import StorefrontSettings
from core.errors import MalformedCallbackError, PaymentDeclinedError
from engines.payments.config import PAYPAL, PayPalConfig, parse_gateway_config
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

_APPROVE_RELS = ("payer-action", "approve")

_SIGNATURE_HEADERS = {
    "auth_algo": "PAYPAL-AUTH-ALGO",
    "cert_url": "PAYPAL-CERT-URL",
    "transmission_id": "PAYPAL-TRANSMISSION-ID",
    "transmission_sig": "PAYPAL-TRANSMISSION-SIG",
    "transmission_time": "PAYPAL-TRANSMISSION-TIME",
}

ALREADY_CAPTURED = "ORDER_ALREADY_CAPTURED"


def _amount(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise MalformedCallbackError(
            "PayPal amount is not a number.",
            details={"provider_code": PAYPAL},
        ) from None


def _first_issue(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    details = body.get("details") or []
    if details and isinstance(details[0], dict):
        return str(details[0].get("issue") or "")
    return str(body.get("name") or "")


class PayPalGateway(PaymentGateway):
    code = PAYPAL
    display_name = "PayPal"

    def __init__(
        self,
        *,
        settings: Optional[StorefrontSettings] = None,
        client: Optional[httpx.Client] = None,
    ):
        self._settings = settings or StorefrontSettings()
        self._client = client or httpx.Client(timeout=self._settings.http_timeout_seconds)

    def parse_config(self, raw: Optional[Mapping[str, Any]]) -> PayPalConfig:
        return parse_gateway_config(PAYPAL, raw)

    def public_checkout_config(self, config: PayPalConfig) -> dict:
        return {"client_id": config.client_id, "mode": config.mode}

    # ══════════════════════════════════════════════════════════
    # HTTP PLUMBING
    # ══════════════════════════════════════════════════════════

    def _base_url(self, config: PayPalConfig) -> str:
        return self._settings.paypal_api_base[config.mode].rstrip("/")

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransientError(
                f"PayPal unreachable: {type(e).__name__}", provider_code=PAYPAL,
            ) from e
        if response.status_code == 401:
            raise AuthenticationError(
                "PayPal rejected the tenant's credentials.", provider_code=PAYPAL,
            )
        if response.status_code >= 500:
            raise TransientError(
                f"PayPal returned {response.status_code}.", provider_code=PAYPAL,
            )
        return response

    def access_token(self, config: PayPalConfig) -> str:
        response = self._send(
            "POST",
            f"{self._base_url(config)}/v1/oauth2/token",
            auth=(config.client_id, config.client_secret),
            data={"grant_type": "client_credentials"},
        )
        if response.status_code != 200:
            raise AuthenticationError(
                f"PayPal token request failed ({response.status_code}).",
                provider_code=PAYPAL,
            )
        token = response.json().get("access_token")
        if not token:
            raise AuthenticationError("PayPal returned no access token.", provider_code=PAYPAL)
        return token

    def _authorized(self, config: PayPalConfig, **extra: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token(config)}",
            "Content-Type": "application/json",
            **extra,
        }

    # ══════════════════════════════════════════════════════════
    # PAYMENT CREATION
    # ══════════════════════════════════════════════════════════

    def create_payment(self, command: CreatePaymentCommand, config: PayPalConfig) -> PaymentStartResult:
        context = {"user_action": "PAY_NOW", "shipping_preference": "NO_SHIPPING"}
        if self._settings.payment_return_url:
            context["return_url"] = self._settings.payment_return_url
        if self._settings.payment_cancel_url:
            context["cancel_url"] = self._settings.payment_cancel_url
        if config.brand_name:
            context["brand_name"] = config.brand_name

        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": command.order_code,
                    "custom_id": str(command.transaction_id),
                    "amount": {
                        "currency_code": command.currency.upper(),
                        "value": str(command.amount),
                    },
                }
            ],
            "application_context": context,
        }
        response = self._send(
            "POST",
            f"{self._base_url(config)}/v2/checkout/orders",
            headers=self._authorized(config, **{"PayPal-Request-Id": command.idempotency_key}),
            json=body,
        )
        if response.status_code not in (200, 201):
            issue = _first_issue(response)
            logger.warning(
                f"PayPal refused order for {command.order_code}: "
                f"{response.status_code} {issue}"
            )
            raise PaymentDeclinedError(
                "PayPal payment could not be created.",
                details={"provider_code": PAYPAL, "issue": issue},
            )

        payload = response.json()
        redirect = next(
            (
                link.get("href")
                for link in payload.get("links") or []
                if link.get("rel") in _APPROVE_RELS
            ),
            None,
        )
        if not payload.get("id") or not redirect:
            raise IntegrationError(
                "PayPal order response has no id or approve link.",
                provider_code=PAYPAL,
            )
        return PaymentStartResult(
            provider_reference=payload["id"],
            status=StartStatus.REQUIRES_ACTION,
            redirect_url=redirect,
            raw={"id": payload["id"], "status": payload.get("status")},
        )

    def capture(self, provider_reference: str, config: PayPalConfig) -> Optional[CallbackNotice]:
        response = self._send(
            "POST",
            f"{self._base_url(config)}/v2/checkout/orders/{provider_reference}/capture",
            headers=self._authorized(config, **{"PayPal-Request-Id": f"capture-{provider_reference}"}),
        )
        if response.status_code == 422:
            issue = _first_issue(response)
            if issue == ALREADY_CAPTURED:
                return None
            return CallbackNotice(
                provider_reference=provider_reference,
                outcome=CallbackOutcome.FAILED,
                failure_reason=issue or "CAPTURE_FAILED",
            )
        if response.status_code not in (200, 201):
            raise IntegrationError(
                f"PayPal capture failed ({response.status_code}).",
                provider_code=PAYPAL,
            )

        payload = response.json()
        if payload.get("status") != "COMPLETED":
            return None
        captures = (
            ((payload.get("purchase_units") or [{}])[0].get("payments") or {})
            .get("captures") or []
        )
        amount = _amount((captures[0].get("amount") or {}).get("value")) if captures else None
        return CallbackNotice(
            provider_reference=provider_reference,
            outcome=CallbackOutcome.SUCCEEDED,
            event_id=captures[0].get("id", "") if captures else "",
            amount=amount,
            raw={"id": payload.get("id"), "status": payload.get("status")},
        )

    # ══════════════════════════════════════════════════════════
    # CALLBACKS
    # ══════════════════════════════════════════════════════════

    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> CallbackNotice:
        event = load_json_body(raw_body, PAYPAL)
        event_type = event.get("event_type")
        resource = event.get("resource")
        if not event_type or not isinstance(resource, dict):
            raise MalformedCallbackError(
                "PayPal event has no event_type or resource.",
                details={"provider_code": PAYPAL},
            )

        related_order = (
            (resource.get("supplementary_data") or {}).get("related_ids") or {}
        ).get("order_id")

        if event_type == "CHECKOUT.ORDER.APPROVED":
            outcome, reference = CallbackOutcome.APPROVED, resource.get("id")
        elif event_type == "PAYMENT.CAPTURE.COMPLETED":
            outcome, reference = CallbackOutcome.SUCCEEDED, related_order
        elif event_type in ("PAYMENT.CAPTURE.DENIED", "PAYMENT.CAPTURE.DECLINED"):
            outcome, reference = CallbackOutcome.FAILED, related_order
        elif event_type == "CHECKOUT.ORDER.VOIDED":
            outcome, reference = CallbackOutcome.FAILED, resource.get("id")
        else:
            outcome, reference = CallbackOutcome.IGNORED, resource.get("id")

        amount = None
        if outcome == CallbackOutcome.SUCCEEDED:
            amount = _amount((resource.get("amount") or {}).get("value"))

        return CallbackNotice(
            provider_reference=str(reference or ""),
            outcome=outcome,
            event_id=str(event.get("id") or ""),
            amount=amount,
            failure_reason=event_type if outcome == CallbackOutcome.FAILED else "",
            raw={"event_type": event_type, "id": event.get("id"), "resource_id": resource.get("id")},
        )

    def verify_callback(self, raw_body: bytes, headers: Mapping[str, str], config: PayPalConfig) -> bool:
        if not config.webhook_id:
            return False
        fields = {key: header_value(headers, name) for key, name in _SIGNATURE_HEADERS.items()}
        if not all(fields.values()):
            return False
        try:
            body = {
                **fields,
                "webhook_id": config.webhook_id,
                "webhook_event": json.loads(raw_body.decode("utf-8")),
            }
            response = self._send(
                "POST",
                f"{self._base_url(config)}/v1/notifications/verify-webhook-signature",
                headers=self._authorized(config),
                json=body,
            )
        except (IntegrationError, ValueError) as e:
            logger.warning(f"PayPal webhook verification unavailable: {e}")
            return False
        if response.status_code != 200:
            return False
        return response.json().get("verification_status") == "SUCCESS"
