"""
Storefront Pricing — Pricing Primitives
=========================================
Pure functions over cart contents + tenant configuration.
No database access, no clock reads, no side effects.

All money is Decimal, rounded HALF_UP to 2 places.
Tax rates are percentages (10 means 10%).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from core.policy.rejection import ReasonCode, RejectionReason

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value) -> Decimal:
    """Quantize to cents, HALF_UP."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _norm_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


# ══════════════════════════════════════════════════════════════
# DESTINATION
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Destination:
    """Where the order ships. Both codes optional (digital / pickup)."""

    country_code: Optional[str] = None
    region_code: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "country_code", _norm_code(self.country_code))
        object.__setattr__(self, "region_code", _norm_code(self.region_code))


# ══════════════════════════════════════════════════════════════
# TAX RULE EVALUATOR
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TaxRate:
    rule_id: int
    name: str
    rate: Decimal
    applies_to_shipping: bool = False
    country_code: Optional[str] = None
    region_code: Optional[str] = None
    enabled: bool = True

    def __post_init__(self):
        if not isinstance(self.rate, Decimal):
            raise ValueError("rate must be Decimal.")
        if self.rate < 0:
            raise ValueError(f"Tax rate must not be negative, got {self.rate}.")
        object.__setattr__(self, "country_code", _norm_code(self.country_code))
        object.__setattr__(self, "region_code", _norm_code(self.region_code))

    def compute_tax(self, base: Decimal) -> Decimal:
        if base <= 0:
            return ZERO
        return to_money(base * self.rate / HUNDRED)


def pick_tax_rate(
    rates: Sequence[TaxRate],
    destination: Destination,
    *,
    for_shipping: bool = False,
) -> Optional[TaxRate]:
    """
    Most specific enabled rule for the destination wins:
    region match, then country-wide match, then tenant-wide rule.
    Ties resolve to the lowest rule id. Shipping only considers
    rules flagged applies_to_shipping.
    """
    candidates = sorted(
        (
            r for r in rates
            if r.enabled and (r.applies_to_shipping or not for_shipping)
        ),
        key=lambda r: r.rule_id,
    )

    if destination.country_code and destination.region_code:
        for rate in candidates:
            if (
                rate.region_code == destination.region_code
                and rate.country_code in (None, destination.country_code)
            ):
                return rate

    if destination.country_code:
        for rate in candidates:
            if (
                rate.country_code == destination.country_code
                and rate.region_code is None
            ):
                return rate

    for rate in candidates:
        if rate.country_code is None and rate.region_code is None:
            return rate

    return None


# ══════════════════════════════════════════════════════════════
# SHIPPING RATE EVALUATOR
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ShippingRate:
    method_id: int
    name: str
    method_type: str
    flat_rate: Optional[Decimal] = None
    price_per_kg: Optional[Decimal] = None
    free_shipping_threshold: Optional[Decimal] = None
    country_code: Optional[str] = None
    region_code: Optional[str] = None
    enabled: bool = True

    def __post_init__(self):
        object.__setattr__(self, "country_code", _norm_code(self.country_code))
        object.__setattr__(self, "region_code", _norm_code(self.region_code))

    def serves(self, destination: Destination) -> bool:
        if not self.enabled:
            return False
        if self.country_code and self.country_code != destination.country_code:
            return False
        if self.region_code and self.region_code != destination.region_code:
            return False
        return True


@dataclass(frozen=True)
class ShippingQuote:
    method_id: Optional[int]
    method_name: Optional[str]
    cost: Decimal

    def to_dict(self) -> dict:
        return {
            "method_id": self.method_id,
            "method_name": self.method_name,
            "cost": str(self.cost),
        }


NO_SHIPPING = ShippingQuote(method_id=None, method_name=None, cost=ZERO)


def _positive(value: Optional[Decimal]) -> bool:
    return value is not None and value > 0


def shipping_cost(
    rate: ShippingRate,
    items_subtotal: Decimal,
    total_weight_kg: Decimal,
) -> Decimal:
    method_type = rate.method_type

    if method_type in ("FREE", "LOCAL_PICKUP"):
        return ZERO

    if method_type in ("FLAT_RATE", "PRICE_BASED"):
        return to_money(rate.flat_rate)

    if method_type in ("WEIGHT_BASED", "PRICE_PER_KG"):
        if not _positive(rate.price_per_kg):
            return ZERO
        return to_money(rate.price_per_kg * total_weight_kg)

    if method_type == "FREE_OVER_THRESHOLD":
        threshold = rate.free_shipping_threshold
        if threshold is not None and items_subtotal >= threshold:
            return ZERO
        if _positive(rate.flat_rate):
            return to_money(rate.flat_rate)
        if _positive(rate.price_per_kg):
            return to_money(rate.price_per_kg * total_weight_kg)
        return ZERO

    raise ValueError(f"Unknown shipping method type '{method_type}'.")


def select_shipping_rate(
    rates: Sequence[ShippingRate],
    destination: Destination,
    requested_method_id: Optional[int] = None,
) -> Optional[ShippingRate]:
    """
    The requested method when it serves the destination, otherwise the
    first method that does. None when the tenant ships nothing there.
    """
    serving = [r for r in rates if r.serves(destination)]
    if requested_method_id is not None:
        for rate in serving:
            if rate.method_id == requested_method_id:
                return rate
        return None
    return serving[0] if serving else None


def quote_shipping(
    rates: Sequence[ShippingRate],
    destination: Destination,
    items_subtotal: Decimal,
    total_weight_kg: Decimal,
    requested_method_id: Optional[int] = None,
) -> ShippingQuote:
    rate = select_shipping_rate(rates, destination, requested_method_id)
    if rate is None:
        return NO_SHIPPING
    return ShippingQuote(
        method_id=rate.method_id,
        method_name=rate.name,
        cost=shipping_cost(rate, items_subtotal, total_weight_kg),
    )


# ══════════════════════════════════════════════════════════════
# COUPON VALIDATOR / DISCOUNT CALCULATOR
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CouponTerms:
    coupon_id: int
    code: str
    discount_type: str
    value: Decimal = ZERO
    usage_limit: Optional[int] = None
    used_count: int = 0
    min_order_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    active: bool = True

    def __post_init__(self):
        if self.discount_type not in ("PERCENT", "FIXED", "FREE_SHIPPING"):
            raise ValueError(f"Unknown discount type '{self.discount_type}'.")
        if self.value is not None and self.value < 0:
            raise ValueError("Coupon value must not be negative.")

    @property
    def is_free_shipping(self) -> bool:
        return self.discount_type == "FREE_SHIPPING"


def coupon_rejection(
    coupon: Optional[CouponTerms],
    code: str,
    items_subtotal: Decimal,
    now: datetime,
) -> Optional[RejectionReason]:
    """None when the coupon may be applied to this subtotal right now."""
    policy = "coupon_validity_policy"

    if coupon is None:
        return RejectionReason(
            code=ReasonCode.COUPON_NOT_FOUND,
            message=f"Coupon '{code}' does not exist.",
            policy_name=policy,
        )
    if not coupon.active:
        return RejectionReason(
            code=ReasonCode.COUPON_INACTIVE,
            message=f"Coupon '{coupon.code}' is not active.",
            policy_name=policy,
        )
    if coupon.valid_from is not None and now < coupon.valid_from:
        return RejectionReason(
            code=ReasonCode.COUPON_NOT_STARTED,
            message=f"Coupon '{coupon.code}' is not valid yet.",
            policy_name=policy,
        )
    if coupon.valid_to is not None and now > coupon.valid_to:
        return RejectionReason(
            code=ReasonCode.COUPON_EXPIRED,
            message=f"Coupon '{coupon.code}' has expired.",
            policy_name=policy,
        )
    if (
        coupon.min_order_amount is not None
        and items_subtotal < coupon.min_order_amount
    ):
        return RejectionReason(
            code=ReasonCode.COUPON_MIN_ORDER_NOT_MET,
            message=(
                f"Coupon '{coupon.code}' requires a subtotal of at least "
                f"{to_money(coupon.min_order_amount)}."
            ),
            policy_name=policy,
        )
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return RejectionReason(
            code=ReasonCode.COUPON_USAGE_EXHAUSTED,
            message=f"Coupon '{coupon.code}' has reached its usage limit.",
            policy_name=policy,
        )
    return None


def coupon_discount(coupon: CouponTerms, items_subtotal: Decimal) -> Decimal:
    """
    min(percent-of-subtotal or fixed value, max discount, subtotal),
    never negative. FREE_SHIPPING coupons discount no items.
    """
    if coupon.discount_type == "FREE_SHIPPING":
        return ZERO

    if coupon.discount_type == "PERCENT":
        raw = to_money(items_subtotal * (coupon.value or ZERO) / HUNDRED)
    else:
        raw = to_money(coupon.value)

    if coupon.max_discount_amount is not None:
        raw = min(raw, to_money(coupon.max_discount_amount))

    raw = min(raw, to_money(items_subtotal))
    return max(raw, ZERO)
