"""
Storefront Payments — Gateway Contract
========================================
Shared infrastructure for payment provider adapters.

Gateways are stateless translators between the internal payment
contract and one provider's API. They never touch the database:
the orchestrator persists what create_payment() returns and the
reconciliation handler applies what parse_callback() reports.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from core.errors import GatewayConfigError, MalformedCallbackError, ValidationError


# ══════════════════════════════════════════════════════════════
# ERROR HIERARCHY
# ══════════════════════════════════════════════════════════════

class IntegrationError(Exception):
    """Base error for provider communication failures."""

    def __init__(self, message: str, provider_code: str = "", retryable: bool = False):
        super().__init__(message)
        self.provider_code = provider_code
        self.retryable = retryable


class AuthenticationError(IntegrationError):
    """Provider rejected our credentials."""

    def __init__(self, message: str, provider_code: str = ""):
        super().__init__(message, provider_code=provider_code, retryable=False)


class TransientError(IntegrationError):
    """Temporary failure, retryable with backoff."""

    def __init__(self, message: str, provider_code: str = ""):
        super().__init__(message, provider_code=provider_code, retryable=True)


# ══════════════════════════════════════════════════════════════
# WEBHOOK SIGNATURE VERIFICATION
# ══════════════════════════════════════════════════════════════

def sign_payload(payload_bytes: bytes, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        payload_bytes,
        hashlib.sha256,
    ).hexdigest()


def verify_hmac_signature(payload_bytes: bytes, signature: str, secret: str) -> bool:
    """
    Verify an HMAC-SHA256 signature on an inbound callback payload.

    An empty secret or signature never verifies.
    """
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign_payload(payload_bytes, secret), signature)


def header_value(headers: Mapping[str, str], name: str) -> str:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


def load_json_body(raw_body: bytes, provider_code: str) -> Dict[str, Any]:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise MalformedCallbackError(
            f"{provider_code} callback body is not valid JSON.",
            details={"provider_code": provider_code},
        ) from None
    if not isinstance(payload, dict):
        raise MalformedCallbackError(
            f"{provider_code} callback body must be a JSON object.",
            details={"provider_code": provider_code},
        )
    return payload


# ══════════════════════════════════════════════════════════════
# CONTRACT VALUE OBJECTS
# ══════════════════════════════════════════════════════════════

class StartStatus:
    """Immediate outcome of create_payment()."""

    CREATED = "CREATED"
    REQUIRES_ACTION = "REQUIRES_ACTION"
    OFFLINE_PENDING = "OFFLINE_PENDING"

    ALL = frozenset({CREATED, REQUIRES_ACTION, OFFLINE_PENDING})


class CallbackOutcome:
    """Normalized meaning of a provider callback."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    APPROVED = "APPROVED"    # buyer approved; a capture is still needed
    IGNORED = "IGNORED"

    ALL = frozenset({SUCCEEDED, FAILED, APPROVED, IGNORED})


@dataclass(frozen=True)
class CreatePaymentCommand:
    """
    Everything a gateway needs to create one payment attempt.

    amount: order currency units (e.g. 38.00), never provider minor units.
    idempotency_key: stable per attempt; sent to providers that support it.
    """

    transaction_id: uuid.UUID
    order_id: uuid.UUID
    order_code: str
    tenant_id: uuid.UUID
    amount: Decimal
    currency: str
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            raise ValidationError("amount must be Decimal.")
        if self.amount < 0:
            raise ValidationError("amount must not be negative.")
        if not self.currency or len(self.currency) != 3:
            raise ValidationError("currency must be a 3-letter code.")

    @property
    def idempotency_key(self) -> str:
        return f"payment-{self.transaction_id}"


@dataclass(frozen=True)
class PaymentStartResult:
    provider_reference: str
    status: str
    client_secret: Optional[str] = None
    redirect_url: Optional[str] = None
    instructions: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.provider_reference:
            raise ValidationError("provider_reference must be non-empty.")
        if self.status not in StartStatus.ALL:
            raise ValidationError(f"Unknown start status '{self.status}'.")

    @property
    def client_continuation(self) -> Optional[Dict[str, str]]:
        """What the client must do next, or None."""
        if self.redirect_url:
            return {"type": "redirect", "url": self.redirect_url}
        if self.client_secret:
            return {"type": "client_secret", "client_secret": self.client_secret}
        if self.instructions:
            return {"type": "offline", "instructions": self.instructions}
        return None


@dataclass(frozen=True)
class CallbackNotice:
    """
    One parsed provider callback.

    amount: what the provider says was paid, when it says so.
        Compared against the transaction before it is marked PAID.
    """

    provider_reference: str
    outcome: str
    event_id: str = ""
    amount: Optional[Decimal] = None
    failure_reason: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.outcome not in CallbackOutcome.ALL:
            raise ValidationError(f"Unknown callback outcome '{self.outcome}'.")


# ══════════════════════════════════════════════════════════════
# GATEWAY INTERFACE
# ══════════════════════════════════════════════════════════════

class PaymentGateway(ABC):
    """One adapter per provider."""

    code: str = ""
    display_name: str = ""

    @abstractmethod
    def parse_config(self, raw: Optional[Mapping[str, Any]]):
        """Typed config from PaymentMethodConfig.config_json."""

    def public_checkout_config(self, config) -> Dict[str, Any]:
        """Non-secret settings the client needs to render the method."""
        return {}

    @abstractmethod
    def create_payment(self, command: CreatePaymentCommand, config) -> PaymentStartResult:
        """
        Raises:
            PaymentDeclinedError: provider refused the payment
            IntegrationError:     provider unreachable or misbehaving
        """

    @abstractmethod
    def parse_callback(self, raw_body: bytes, headers: Mapping[str, str]) -> CallbackNotice:
        """
        Raises:
            MalformedCallbackError: body cannot be parsed at all
        """

    @abstractmethod
    def verify_callback(self, raw_body: bytes, headers: Mapping[str, str], config) -> bool:
        """True when the callback is authentic for this tenant's config."""

    def capture(self, provider_reference: str, config) -> Optional[CallbackNotice]:
        """Finish an APPROVED payment. Gateways without a capture step return None."""
        return None

    def cancel_payment(self, provider_reference: str, config) -> None:
        """
        Tell the provider a voided attempt must not be charged.
        Gateways that never charge without a capture do nothing.

        Raises:
            IntegrationError: provider unreachable or refused
        """
        return None


# ══════════════════════════════════════════════════════════════
# REGISTRY
# ══════════════════════════════════════════════════════════════

class GatewayRegistry:
    """Provider code → gateway instance. Codes are upper case."""

    def __init__(self):
        self._gateways: Dict[str, PaymentGateway] = {}

    def register(self, gateway: PaymentGateway) -> None:
        code = (gateway.code or "").strip().upper()
        if not code:
            raise GatewayConfigError("Gateway must declare a provider code.")
        if code in self._gateways:
            raise GatewayConfigError(
                f"Gateway '{code}' is already registered.",
                details={"provider_code": code},
            )
        self._gateways[code] = gateway

    def get(self, provider_code: str) -> Optional[PaymentGateway]:
        return self._gateways.get((provider_code or "").strip().upper())

    def codes(self) -> list:
        return sorted(self._gateways)
