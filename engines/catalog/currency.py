"""
Storefront Catalog — Tenant Currency Resolution
"""

from __future__ import annotations

import uuid
from typing import Protocol

from core.errors import ValidationError
from engines.catalog.models import Currency


class CurrencyResolver(Protocol):
    def resolve(self, tenant_id: uuid.UUID, currency_id: int) -> Currency:
        ...


class CatalogCurrencyResolver:
    """Resolves against the platform currency table."""

    def resolve(self, tenant_id: uuid.UUID, currency_id: int) -> Currency:
        if currency_id is None:
            raise ValidationError("currencyId is required.")
        currency = Currency.objects.filter(pk=currency_id).first()
        if currency is None:
            raise ValidationError(
                f"Currency {currency_id} cannot be resolved.",
                details={"currency_id": currency_id},
            )
        return currency
