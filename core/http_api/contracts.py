"""
Storefront HTTP API — Contracts
=================================
Framework-agnostic request/response DTOs for storefront endpoints.

Request contracts are built by the transport adapter from headers, path
and JSON body, and validate their own shape. Business validation stays
in the engines.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional


def _require_uuid(value, field_name: str) -> None:
    if not isinstance(value, uuid.UUID):
        raise ValueError(f"{field_name} must be UUID.")


def _require_int(value, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer.")


@dataclass(frozen=True)
class CallerMetadata:
    """Who is calling. Authentication happens upstream."""

    tenant_id: uuid.UUID
    user_id: Optional[str] = None

    def __post_init__(self):
        _require_uuid(self.tenant_id, "tenant_id")
        if self.user_id is not None and (
            not isinstance(self.user_id, str) or not self.user_id.strip()
        ):
            raise ValueError("user_id must be a non-empty string or None.")

    def require_user(self) -> str:
        if self.user_id is None:
            raise ValueError("X-User-Id header is required.")
        return self.user_id


@dataclass(frozen=True)
class AddressPayload:
    country_code: Optional[str] = None
    region_code: Optional[str] = None
    city: str = ""
    postal_code: str = ""
    address_line: str = ""
    phone: str = ""
    shipping_method_id: Optional[int] = None

    def __post_init__(self):
        if self.shipping_method_id is not None:
            _require_int(self.shipping_method_id, "shippingMethodId")


# ══════════════════════════════════════════════════════════════
# CART
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CartLineHttpRequest:
    caller: CallerMetadata
    item_id: int
    quantity: int

    def __post_init__(self):
        self.caller.require_user()
        _require_int(self.item_id, "itemId")
        _require_int(self.quantity, "qty")


@dataclass(frozen=True)
class CartLineUpdateHttpRequest:
    caller: CallerMetadata
    line_id: int
    quantity: int = 0

    def __post_init__(self):
        self.caller.require_user()
        _require_int(self.line_id, "lineId")
        _require_int(self.quantity, "qty")


# ══════════════════════════════════════════════════════════════
# CHECKOUT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class QuoteHttpRequest:
    """lines empty → price the caller's active cart."""

    caller: CallerMetadata
    currency_id: int
    lines: tuple[tuple[int, int], ...] = field(default_factory=tuple)
    coupon_code: Optional[str] = None
    shipping_address: Optional[AddressPayload] = None

    def __post_init__(self):
        _require_int(self.currency_id, "currencyId")
        if not isinstance(self.lines, tuple):
            raise ValueError("lines must be a tuple.")
        if not self.lines:
            self.caller.require_user()


@dataclass(frozen=True)
class CheckoutHttpRequest:
    caller: CallerMetadata
    lines: tuple[tuple[int, int], ...]
    currency_id: int
    payment_method: str
    coupon_code: Optional[str] = None
    shipping_address: Optional[AddressPayload] = None
    strict_coupon: bool = False

    def __post_init__(self):
        self.caller.require_user()
        if not isinstance(self.lines, tuple):
            raise ValueError("lines must be a tuple.")
        _require_int(self.currency_id, "currencyId")
        if not self.payment_method or not isinstance(self.payment_method, str):
            raise ValueError("paymentMethod must be a non-empty string.")


@dataclass(frozen=True)
class CartCheckoutHttpRequest:
    caller: CallerMetadata
    currency_id: int
    payment_method: str
    coupon_code: Optional[str] = None
    shipping_address: Optional[AddressPayload] = None
    strict_coupon: bool = False

    def __post_init__(self):
        self.caller.require_user()
        _require_int(self.currency_id, "currencyId")
        if not self.payment_method or not isinstance(self.payment_method, str):
            raise ValueError("paymentMethod must be a non-empty string.")


# ══════════════════════════════════════════════════════════════
# ORDERS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OrderActionHttpRequest:
    caller: CallerMetadata
    order_id: uuid.UUID
    reason: Optional[str] = None

    def __post_init__(self):
        _require_uuid(self.order_id, "order_id")


@dataclass(frozen=True)
class ReleaseAbandonedHttpRequest:
    tenant_id: uuid.UUID

    def __post_init__(self):
        _require_uuid(self.tenant_id, "tenant_id")


# ══════════════════════════════════════════════════════════════
# PAYMENTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PaymentStartHttpRequest:
    tenant_id: uuid.UUID
    order_id: uuid.UUID
    payment_method: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None

    def __post_init__(self):
        _require_uuid(self.tenant_id, "tenantId")
        _require_uuid(self.order_id, "orderId")
        if not self.payment_method or not isinstance(self.payment_method, str):
            raise ValueError("paymentMethod must be a non-empty string.")
        if self.amount is not None and not isinstance(self.amount, Decimal):
            raise ValueError("amount must be Decimal or None.")


@dataclass(frozen=True)
class WebhookHttpRequest:
    provider_code: str
    raw_body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.provider_code or not isinstance(self.provider_code, str):
            raise ValueError("provider_code must be a non-empty string.")
        if not isinstance(self.raw_body, bytes):
            raise ValueError("raw_body must be bytes.")


# ══════════════════════════════════════════════════════════════
# RESPONSES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HttpApiErrorBody:
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")
        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")
        if not isinstance(self.details, dict):
            raise ValueError("details must be dict.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class HttpApiResponse:
    ok: bool
    data: Any = None
    error: Optional[HttpApiErrorBody] = None
    meta: Optional[dict[str, Any]] = None

    def __post_init__(self):
        if not isinstance(self.ok, bool):
            raise ValueError("ok must be bool.")
        if self.ok and self.error is not None:
            raise ValueError("error must be None when ok=True.")
        if not self.ok and self.error is None:
            raise ValueError("error is required when ok=False.")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": self.ok}
        if self.ok:
            payload["data"] = self.data
        else:
            payload["error"] = self.error.to_dict()
        if self.meta is not None:
            payload["meta"] = dict(self.meta)
        return payload
