"""
Storefront Core — Error Taxonomy
==================================
Every failure the checkout and payment path can surface.

Each error carries a stable machine-readable code, a human-readable
message and a details dict that names the offending item, coupon,
currency or provider. The HTTP layer maps error classes to status codes
(core.http_api.errors); engines never deal with transport concerns.
"""

from __future__ import annotations

from typing import Any, Optional

from core.policy.rejection import RejectionReason


class StorefrontError(Exception):
    """Base error for storefront engines."""

    code = "STOREFRONT_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = dict(details or {})

    @classmethod
    def from_rejection(cls, reason: RejectionReason, **details: Any):
        return cls(
            reason.message,
            code=reason.code,
            details={"policy_name": reason.policy_name, **details},
        )


# ══════════════════════════════════════════════════════════════
# INPUT / CHECKOUT ERRORS (abort the whole checkout)
# ══════════════════════════════════════════════════════════════

class ValidationError(StorefrontError, ValueError):
    """Bad input: empty cart, non-positive quantity, unknown currency."""

    code = "VALIDATION_ERROR"


class NotFoundError(StorefrontError):
    code = "NOT_FOUND"


class InsufficientStockError(StorefrontError):
    """Conditional stock decrement affected zero rows."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: int, requested: int, available: Optional[int]):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Item {item_id} has insufficient stock: "
            f"requested {requested}, available {available}.",
            details={
                "item_id": item_id,
                "requested": requested,
                "available": available,
            },
        )


class CurrencyMismatchError(StorefrontError):
    code = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str, *, item_id=None):
        self.expected = expected
        self.actual = actual
        details = {"expected": expected, "actual": actual}
        if item_id is not None:
            details["item_id"] = item_id
        super().__init__(
            f"Currency mismatch: expected {expected}, got {actual}.",
            details=details,
        )


class CouponInvalidError(StorefrontError):
    """
    Coupon failed validation.

    Soft by default: the pricing engine degrades to a zero discount and
    records the reason. Raised only for strict validation or when the
    usage limit is exhausted between quote and order persistence.
    """

    code = "COUPON_INVALID"

    def __init__(self, coupon_code: str, reason: str, message: str = ""):
        self.coupon_code = coupon_code
        self.reason = reason
        super().__init__(
            message or f"Coupon '{coupon_code}' is not applicable ({reason}).",
            details={"coupon_code": coupon_code, "reason": reason},
        )


class PricingInvariantError(StorefrontError, AssertionError):
    """A priced quote violated its own arithmetic. Always a bug."""

    code = "PRICING_INVARIANT_VIOLATED"


# ══════════════════════════════════════════════════════════════
# ORDER LIFECYCLE ERRORS
# ══════════════════════════════════════════════════════════════

class InvalidTransitionError(StorefrontError):
    code = "INVALID_TRANSITION"


class ForbiddenError(StorefrontError):
    code = "FORBIDDEN"


# ══════════════════════════════════════════════════════════════
# PAYMENT ERRORS
# ══════════════════════════════════════════════════════════════

class PaymentMethodDisabledError(ForbiddenError):
    """Provider unknown to the platform or not enabled for the tenant."""

    code = "PAYMENT_METHOD_DISABLED"


class PaymentDeclinedError(StorefrontError):
    """Gateway refused to create the payment. The order stays PENDING."""

    code = "PAYMENT_DECLINED"


class GatewayConfigError(StorefrontError):
    """Tenant gateway configuration is missing required settings."""

    code = "GATEWAY_CONFIG_INVALID"


class MalformedCallbackError(StorefrontError):
    """Provider callback could not be parsed at all."""

    code = "MALFORMED_CALLBACK"


class UnknownCallbackError(StorefrontError):
    """Callback references a transaction this system never created."""

    code = "UNKNOWN_CALLBACK"

    def __init__(self, provider_code: str, provider_reference: str):
        self.provider_code = provider_code
        self.provider_reference = provider_reference
        super().__init__(
            f"No transaction for {provider_code} reference "
            f"'{provider_reference}'.",
            details={
                "provider_code": provider_code,
                "provider_reference": provider_reference,
            },
        )
