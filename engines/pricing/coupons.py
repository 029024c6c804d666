"""
Storefront Pricing — Coupon Usage
===================================
used_count only ever grows, and only through a conditional update, so
two checkouts racing for the last use of a coupon cannot both win.
"""

from __future__ import annotations

import logging
import uuid

from django.db.models import F, Q

from engines.pricing.models import Coupon

logger = logging.getLogger("storefront.pricing")


def consume_coupon(tenant_id: uuid.UUID, code: str) -> bool:
    """
    Increment used_count when the limit still allows it.
    Returns False when the coupon is gone, inactive or exhausted.
    """
    updated = (
        Coupon.objects.filter(
            tenant_id=tenant_id,
            code=code.strip().upper(),
            active=True,
        )
        .filter(Q(usage_limit__isnull=True) | Q(used_count__lt=F("usage_limit")))
        .update(used_count=F("used_count") + 1)
    )
    if updated:
        logger.info(f"Coupon consumed: {code} (tenant: {tenant_id})")
    return updated == 1
