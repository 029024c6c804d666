"""
Storefront Orders — Order Assembler
=====================================
Turns a priced quote into a persisted order, atomically:

1. lock every item's stock row, ascending by item id
2. conditionally decrement stock for each line
3. take one coupon use (conditional increment)
4. allocate the tenant's next order code
5. insert the Order header (PENDING) and its OrderLines

Any failure rolls everything back: no partial order, no stock held.
Payment providers are never contacted from inside this transaction;
the caller starts payment once assemble() has returned (committed).
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Protocol, Sequence

from django.db import transaction

from core.errors import CouponInvalidError, ValidationError
from core.events import SubscriberRegistry, publish_after_commit
from core.policy.rejection import ReasonCode
from core.time.clock import Clock, SystemClock
from engines.catalog.models import Currency
from engines.catalog.stock import lock_items, reserve_stock
from engines.orders.codes import next_order_code
from engines.orders.events import build_order_placed_event
from engines.orders.models import Order, OrderLine, OrderStatus
from engines.pricing.coupons import consume_coupon
from engines.pricing.services import LineRequest, PricedQuote, merge_line_requests

logger = logging.getLogger("storefront.orders")


class PaymentMethodGuard(Protocol):
    def require_enabled(self, tenant_id: uuid.UUID, provider_code: str):
        """Raise PaymentMethodDisabledError unless usable for the tenant."""
        ...  # pragma: no cover


class OrderAssembler:

    def __init__(
        self,
        payment_methods: PaymentMethodGuard,
        *,
        clock: Optional[Clock] = None,
        event_registry: Optional[SubscriberRegistry] = None,
    ):
        self._payment_methods = payment_methods
        self._clock = clock or SystemClock()
        self._event_registry = event_registry

    def checkout(
        self,
        user_id: str,
        tenant_id: uuid.UUID,
        lines: Sequence[LineRequest],
        quote: PricedQuote,
        payment_method: str,
    ) -> Order:
        """
        Raises:
            ValidationError:            empty cart, quote/lines disagree,
                                        unresolvable currency, item gone
            PaymentMethodDisabledError: method unknown or disabled
            InsufficientStockError:     a conditional decrement failed
            CouponInvalidError:         last coupon use taken meanwhile
        """
        if not user_id or not isinstance(user_id, str):
            raise ValidationError("user_id must be a non-empty string.")
        if not isinstance(tenant_id, uuid.UUID):
            raise ValidationError("tenant_id must be UUID.")
        if quote.tenant_id != tenant_id:
            raise ValidationError("Quote was priced for another store.")

        requested = merge_line_requests(lines)
        if not requested:
            raise ValidationError("Cart is empty.")
        quantities = {line.item_id: line.quantity for line in requested}
        quoted = {line.item_id: line.quantity for line in quote.lines}
        if quantities != quoted:
            raise ValidationError("Priced quote does not match the checkout lines.")

        provider_code = (payment_method or "").strip().upper()
        self._payment_methods.require_enabled(tenant_id, provider_code)

        currency = Currency.objects.filter(code=quote.currency_code).first()
        if currency is None:
            raise ValidationError(
                f"Currency {quote.currency_code} cannot be resolved.",
            )

        with transaction.atomic():
            items = lock_items(quantities)
            for item_id, item in items.items():
                if item.tenant_id != tenant_id or not item.active:
                    raise ValidationError(
                        f"Item {item_id} is not available in this store.",
                        details={"item_id": item_id},
                    )
            reserve_stock(items, quantities)

            if quote.coupon_code and not consume_coupon(tenant_id, quote.coupon_code):
                raise CouponInvalidError(
                    quote.coupon_code,
                    ReasonCode.COUPON_USAGE_EXHAUSTED,
                    f"Coupon '{quote.coupon_code}' was used up before the "
                    f"order could be placed.",
                )

            now = self._clock.now_utc()
            address = quote.shipping_address
            order = Order.objects.create(
                code=next_order_code(tenant_id, now),
                user_id=user_id,
                tenant_id=tenant_id,
                currency=currency,
                items_subtotal=quote.items_subtotal,
                shipping_total=quote.shipping_total,
                item_tax_total=quote.item_tax,
                shipping_tax_total=quote.shipping_tax,
                coupon_code=quote.coupon_code,
                coupon_discount=quote.coupon_discount,
                total_amount=quote.grand_total,
                payment_method=provider_code,
                shipping_method_id=quote.shipping.method_id,
                shipping_method_name=quote.shipping.method_name or "",
                shipping_address={} if address is None else address.to_dict(),
                status=OrderStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            for line in quote.lines:
                OrderLine.objects.create(
                    order=order,
                    item_id=line.item_id,
                    item_name=line.name,
                    image_url=line.image_url or "",
                    quantity=line.quantity,
                    unit_price_at_purchase=line.unit_price,
                    line_subtotal=line.line_subtotal,
                )

            publish_after_commit(build_order_placed_event(order), self._event_registry)

        logger.info(
            f"Order placed: {order.code} ({order.id}) tenant {tenant_id} "
            f"total {order.total_amount} {quote.currency_code}"
        )
        return order
