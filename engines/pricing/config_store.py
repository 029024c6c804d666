"""
Storefront Pricing — Tenant Rule Lookup
=========================================
Tax rules, shipping methods and coupons by tenant, returned as frozen
snapshots for the pure evaluators in engines.pricing.rules.
"""

from __future__ import annotations

import uuid
from typing import Optional, Protocol

from engines.pricing.rules import CouponTerms, ShippingRate, TaxRate


class PricingConfigStore(Protocol):
    """
    Implementations may back this with the ORM or with plain lists.
    """

    def tax_rates(self, tenant_id: uuid.UUID) -> list[TaxRate]:
        ...  # pragma: no cover

    def shipping_rates(self, tenant_id: uuid.UUID) -> list[ShippingRate]:
        ...  # pragma: no cover

    def find_coupon(
        self, tenant_id: uuid.UUID, code: str,
    ) -> Optional[CouponTerms]:
        ...  # pragma: no cover


def _coupon_terms(row) -> CouponTerms:
    return CouponTerms(
        coupon_id=row.pk,
        code=row.code,
        discount_type=row.discount_type,
        value=row.value,
        usage_limit=row.usage_limit,
        used_count=row.used_count,
        min_order_amount=row.min_order_amount,
        max_discount_amount=row.max_discount_amount,
        valid_from=row.valid_from,
        valid_to=row.valid_to,
        active=row.active,
    )


class DjangoPricingConfigStore:
    """Reads the pricing models of the current tenant."""

    def tax_rates(self, tenant_id: uuid.UUID) -> list[TaxRate]:
        from engines.pricing.models import TaxRule

        return [
            TaxRate(
                rule_id=row.pk,
                name=row.name,
                rate=row.rate,
                applies_to_shipping=row.applies_to_shipping,
                country_code=row.country_code,
                region_code=row.region_code,
                enabled=row.enabled,
            )
            for row in TaxRule.objects.filter(tenant_id=tenant_id, enabled=True)
        ]

    def shipping_rates(self, tenant_id: uuid.UUID) -> list[ShippingRate]:
        from engines.pricing.models import ShippingMethod

        return [
            ShippingRate(
                method_id=row.pk,
                name=row.name,
                method_type=row.method_type,
                flat_rate=row.flat_rate,
                price_per_kg=row.price_per_kg,
                free_shipping_threshold=row.free_shipping_threshold,
                country_code=row.country_code,
                region_code=row.region_code,
                enabled=row.enabled,
            )
            for row in ShippingMethod.objects.filter(
                tenant_id=tenant_id, enabled=True,
            )
        ]

    def find_coupon(
        self, tenant_id: uuid.UUID, code: str,
    ) -> Optional[CouponTerms]:
        from engines.pricing.models import Coupon

        row = Coupon.objects.filter(
            tenant_id=tenant_id,
            code=code.strip().upper(),
        ).first()
        return None if row is None else _coupon_terms(row)


class InMemoryPricingConfigStore:
    """In-memory store for testing and local wiring."""

    def __init__(self):
        self._tax: dict[uuid.UUID, list[TaxRate]] = {}
        self._shipping: dict[uuid.UUID, list[ShippingRate]] = {}
        self._coupons: dict[tuple[uuid.UUID, str], CouponTerms] = {}

    def add_tax_rate(self, tenant_id: uuid.UUID, rate: TaxRate) -> None:
        self._tax.setdefault(tenant_id, []).append(rate)

    def add_shipping_rate(self, tenant_id: uuid.UUID, rate: ShippingRate) -> None:
        self._shipping.setdefault(tenant_id, []).append(rate)

    def add_coupon(self, tenant_id: uuid.UUID, coupon: CouponTerms) -> None:
        self._coupons[(tenant_id, coupon.code.strip().upper())] = coupon

    def tax_rates(self, tenant_id: uuid.UUID) -> list[TaxRate]:
        return list(self._tax.get(tenant_id, []))

    def shipping_rates(self, tenant_id: uuid.UUID) -> list[ShippingRate]:
        return list(self._shipping.get(tenant_id, []))

    def find_coupon(
        self, tenant_id: uuid.UUID, code: str,
    ) -> Optional[CouponTerms]:
        return self._coupons.get((tenant_id, code.strip().upper()))
