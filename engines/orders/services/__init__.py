"""
Storefront Orders — Application Services
==========================================
"""

from engines.orders.services.assembler import OrderAssembler, PaymentMethodGuard
from engines.orders.services.checkout import (
    CheckoutRequest,
    CheckoutResult,
    CheckoutService,
)
from engines.orders.services.lifecycle import (
    RESERVATION_EXPIRED,
    OrderLifecycleService,
)

__all__ = [
    "OrderAssembler",
    "PaymentMethodGuard",
    "CheckoutRequest",
    "CheckoutResult",
    "CheckoutService",
    "OrderLifecycleService",
    "RESERVATION_EXPIRED",
]
