"""
Storefront Orders — Checkout Flow
===================================
Cart Aggregator → Pricing Engine → Order Assembler → Payment Orchestrator.

The order transaction commits before the payment provider is called.
A declined payment leaves the committed order PENDING with its stock
reserved; the buyer retries through /payments/start.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from django.db import transaction

from core.errors import PaymentDeclinedError, ValidationError
from engines.orders.models import Order
from engines.orders.services.assembler import OrderAssembler
from engines.pricing.services import (
    LineRequest,
    PricedQuote,
    PricingEngine,
    ShippingAddress,
)

logger = logging.getLogger("storefront.orders")


@dataclass(frozen=True)
class CheckoutRequest:
    tenant_id: uuid.UUID
    user_id: str
    lines: tuple[LineRequest, ...]
    currency_id: int
    payment_method: str
    coupon_code: Optional[str] = None
    shipping_address: Optional[ShippingAddress] = None
    strict_coupon: bool = False

    def __post_init__(self):
        if not isinstance(self.tenant_id, uuid.UUID):
            raise ValidationError("tenant_id must be UUID.")
        if not self.user_id or not isinstance(self.user_id, str):
            raise ValidationError("user_id must be a non-empty string.")
        if not isinstance(self.lines, tuple):
            raise ValidationError("lines must be a tuple.")
        if not self.lines:
            raise ValidationError("Cart is empty.")
        if isinstance(self.currency_id, bool) or not isinstance(self.currency_id, int):
            raise ValidationError("currencyId must be an integer.")
        if not self.payment_method or not isinstance(self.payment_method, str):
            raise ValidationError("paymentMethod must be a non-empty string.")


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    quote: PricedQuote
    payment: Any = None

    def to_dict(self) -> dict[str, Any]:
        payment = self.payment
        return {
            "order_id": str(self.order.id),
            "order_code": self.order.code,
            "status": self.order.status,
            "grand_total": str(self.order.total_amount),
            "currency_code": self.quote.currency_code,
            "lines": [line.to_dict() for line in self.quote.lines],
            "quote": self.quote.to_dict(),
            "payment_status": None if payment is None else payment.status,
            "transaction_id": (
                None if payment is None else str(payment.transaction_id)
            ),
            "client_continuation": (
                None if payment is None else payment.client_continuation
            ),
        }


class CheckoutService:

    def __init__(
        self,
        pricing: PricingEngine,
        assembler: OrderAssembler,
        orchestrator,
        *,
        cart_service=None,
        lifecycle=None,
    ):
        self._pricing = pricing
        self._assembler = assembler
        self._orchestrator = orchestrator
        self._cart = cart_service
        self._lifecycle = lifecycle

    # ── quotes (no side effects) ──────────────────────────────

    def quote(
        self,
        tenant_id: uuid.UUID,
        currency_id: int,
        lines: tuple[LineRequest, ...],
        shipping_address: Optional[ShippingAddress] = None,
        coupon_code: Optional[str] = None,
        *,
        strict_coupon: bool = False,
    ) -> PricedQuote:
        return self._pricing.price(
            tenant_id,
            currency_id,
            lines,
            shipping_address,
            coupon_code,
            strict_coupon=strict_coupon,
        )

    def quote_from_cart(
        self,
        tenant_id: uuid.UUID,
        user_id: str,
        currency_id: int,
        shipping_address: Optional[ShippingAddress] = None,
        coupon_code: Optional[str] = None,
    ) -> PricedQuote:
        cart = self._require_cart(tenant_id, user_id)
        return self.quote(
            tenant_id,
            currency_id,
            tuple(cart.line_requests()),
            shipping_address,
            coupon_code,
        )

    # ── checkout ──────────────────────────────────────────────

    def checkout(self, request: CheckoutRequest, *, cart_id=None) -> CheckoutResult:
        if transaction.get_connection().in_atomic_block:
            raise RuntimeError(
                "checkout must not run inside an outer transaction; "
                "the order must commit before payment starts."
            )

        quote = self.quote(
            request.tenant_id,
            request.currency_id,
            request.lines,
            request.shipping_address,
            request.coupon_code,
            strict_coupon=request.strict_coupon,
        )
        order = self._assembler.checkout(
            request.user_id,
            request.tenant_id,
            request.lines,
            quote,
            request.payment_method,
        )

        if cart_id is not None and self._cart is not None:
            self._cart.mark_converted(cart_id)

        if order.total_amount <= 0 and self._lifecycle is not None:
            # Nothing to charge.
            order.status = self._lifecycle.complete_from_payment(order.id)
            return CheckoutResult(order=order, quote=quote, payment=None)

        try:
            payment = self._orchestrator.start_payment(
                request.tenant_id,
                order.id,
                order.payment_method,
            )
        except PaymentDeclinedError as exc:
            exc.details.setdefault("order_id", str(order.id))
            exc.details.setdefault("order_code", order.code)
            exc.details.setdefault("payment_status", "FAILED")
            logger.warning(
                f"Payment declined at creation for {order.code}; "
                f"order stays PENDING"
            )
            raise

        return CheckoutResult(order=order, quote=quote, payment=payment)

    def checkout_cart(
        self,
        tenant_id: uuid.UUID,
        user_id: str,
        currency_id: int,
        payment_method: str,
        *,
        coupon_code: Optional[str] = None,
        shipping_address: Optional[ShippingAddress] = None,
        strict_coupon: bool = False,
    ) -> CheckoutResult:
        cart = self._require_cart(tenant_id, user_id)
        request = CheckoutRequest(
            tenant_id=tenant_id,
            user_id=user_id,
            lines=tuple(cart.line_requests()),
            currency_id=currency_id,
            payment_method=payment_method,
            coupon_code=coupon_code,
            shipping_address=shipping_address,
            strict_coupon=strict_coupon,
        )
        return self.checkout(request, cart_id=cart.cart_id)

    def _require_cart(self, tenant_id: uuid.UUID, user_id: str):
        if self._cart is None:
            raise RuntimeError("CheckoutService was built without a cart service.")
        cart = self._cart.get_my_cart(user_id)
        if not cart.lines:
            raise ValidationError("Cart is empty.")
        if cart.tenant_id != tenant_id:
            raise ValidationError("Cart belongs to another store.")
        return cart
