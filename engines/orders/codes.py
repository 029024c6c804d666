"""
Storefront Orders — Order Codes
=================================
KEY-YYMM-XXXXX, e.g. SHOP-2603-0000A.

KEY comes from the tenant's OrderSequence row; XXXXX is the tenant's
running sequence in base 36, zero padded to 5. The sequence row is
locked while the next value is taken, so codes never repeat.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import F

from engines.orders.models import OrderSequence

DEFAULT_CODE_KEY = "SHOP"
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def normalize_code_key(raw) -> str:
    """Upper-case alphanumerics, at most 6 chars, SHOP when empty."""
    cleaned = re.sub(r"[^A-Z0-9]", "", str(raw or "").upper())[:6]
    return cleaned or DEFAULT_CODE_KEY


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative.")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def format_order_code(code_key: str, when: datetime, sequence: int) -> str:
    return (
        f"{normalize_code_key(code_key)}-{when:%y%m}-"
        f"{to_base36(sequence).rjust(5, '0')}"
    )


def next_order_code(tenant_id: uuid.UUID, when: datetime) -> str:
    """Must run inside the checkout transaction."""
    sequence = (
        OrderSequence.objects.select_for_update()
        .filter(tenant_id=tenant_id)
        .first()
    )
    if sequence is None:
        try:
            with transaction.atomic():
                OrderSequence.objects.create(tenant_id=tenant_id)
        except IntegrityError:
            pass
        sequence = OrderSequence.objects.select_for_update().get(tenant_id=tenant_id)

    value = sequence.next_value
    OrderSequence.objects.filter(pk=sequence.pk).update(next_value=F("next_value") + 1)
    return format_order_code(sequence.code_key, when, value)
