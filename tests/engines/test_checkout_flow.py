"""
Checkout: pricing → order assembly → payment start.

The order commits before the provider is called; any failure while
assembling leaves no order, no stock held and no coupon use taken.
"""

from __future__ import annotations

import re
import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from django.db import connections, transaction

from core.errors import (
    CouponInvalidError,
    CurrencyMismatchError,
    InsufficientStockError,
    PaymentMethodDisabledError,
    ValidationError,
)
from core.policy.rejection import ReasonCode
from engines.catalog.models import CatalogItem
from engines.orders.codes import format_order_code, normalize_code_key, to_base36
from engines.orders.events import ORDER_PLACED_V1
from engines.orders.models import Order, OrderLine, OrderSequence, OrderStatus
from engines.orders.services import CheckoutRequest
from engines.payments.models import PaymentTransaction, TransactionStatus
from engines.pricing.models import Coupon, ShippingMethod, TaxRule
from engines.pricing.services import LineRequest, ShippingAddress

pytestmark = pytest.mark.django_db(transaction=True)

US = ShippingAddress(country_code="US", city="Austin", address_line="1 Main St")


@pytest.fixture
def pricing_rules(tenant_id):
    ShippingMethod.objects.create(
        tenant_id=tenant_id, name="Standard", method_type="FLAT_RATE", flat_rate=Decimal("5.00"),
    )
    TaxRule.objects.create(tenant_id=tenant_id, name="Sales tax", rate=Decimal("10"))


# ══════════════════════════════════════════════════════════════
# ORDER CODES
# ══════════════════════════════════════════════════════════════

class TestOrderCodes:
    def test_format(self):
        when = datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert format_order_code("shop", when, 1) == "SHOP-2603-00001"
        assert format_order_code("ab-c", when, 36) == "ABC-2603-00010"

    def test_key_normalization(self):
        assert normalize_code_key("") == "SHOP"
        assert normalize_code_key("my store 42!") == "MYSTOR"

    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "Z"
        assert to_base36(36 ** 2) == "100"


# ══════════════════════════════════════════════════════════════
# HAPPY PATH
# ══════════════════════════════════════════════════════════════

class TestCheckout:
    def test_reference_order_totals_38_and_awaits_cash(
        self, storefront, place_order, make_item, cash_enabled, pricing_rules,
    ):
        widget = make_item(price="10.00", stock=10)

        result = place_order([(widget, 3)], address=US)

        order = Order.objects.get(pk=result.order.id)
        assert order.status == OrderStatus.PENDING
        assert order.total_amount == Decimal("38.00")
        assert order.items_subtotal == Decimal("30.00")
        assert order.shipping_total == Decimal("5.00")
        assert order.item_tax_total == Decimal("3.00")
        assert order.payment_method == "CASH"
        assert order.shipping_address["city"] == "Austin"
        assert re.fullmatch(r"SHOP-2603-[0-9A-Z]{5}", order.code)

        widget.refresh_from_db()
        assert widget.stock_quantity == 7

        assert result.payment.status == TransactionStatus.OFFLINE_PENDING
        assert result.payment.client_continuation == {
            "type": "offline",
            "instructions": "Pay at pickup.",
        }
        tx = PaymentTransaction.objects.get(order=order)
        assert tx.amount == Decimal("38.00")
        assert tx.provider_reference.startswith("CASH-")

    def test_result_dict(self, place_order, make_item, cash_enabled):
        data = place_order([(make_item(), 1)]).to_dict()
        assert data["status"] == "PENDING"
        assert data["grand_total"] == "10.00"
        assert data["payment_status"] == "OFFLINE_PENDING"
        assert data["client_continuation"]["type"] == "offline"
        assert data["quote"]["items_subtotal"] == "10.00"

    def test_lines_snapshot_price_at_purchase(self, place_order, make_item, cash_enabled):
        widget = make_item(price="10.00")
        result = place_order([(widget, 2)])
        CatalogItem.objects.filter(pk=widget.pk).update(price=Decimal("12.00"))

        line = OrderLine.objects.get(order_id=result.order.id)
        assert line.unit_price_at_purchase == Decimal("10.00")
        assert line.line_subtotal == Decimal("20.00")
        with pytest.raises(PermissionError):
            line.save()

    def test_order_header_is_frozen(self, place_order, make_item, cash_enabled):
        order = Order.objects.get(pk=place_order([(make_item(), 1)]).order.id)
        order.total_amount = Decimal("0.01")
        with pytest.raises(PermissionError):
            order.save()
        with pytest.raises(PermissionError):
            order.delete()

    def test_repeated_lines_are_merged(self, place_order, make_item, cash_enabled):
        widget = make_item(stock=10)
        result = place_order([(widget, 1), (widget, 2)])
        line = OrderLine.objects.get(order_id=result.order.id)
        assert line.quantity == 3
        widget.refresh_from_db()
        assert widget.stock_quantity == 7

    def test_codes_are_sequential_per_tenant(self, place_order, make_item, cash_enabled, tenant_id):
        first = place_order([(make_item(), 1)]).order.code
        second = place_order([(make_item(), 1)]).order.code
        assert first.endswith("00001")
        assert second.endswith("00002")
        assert OrderSequence.objects.get(tenant_id=tenant_id).next_value == 3

    def test_code_key_comes_from_sequence(self, place_order, make_item, cash_enabled, tenant_id):
        OrderSequence.objects.create(tenant_id=tenant_id, code_key="ACME", next_value=37)
        assert place_order([(make_item(), 1)]).order.code == "ACME-2603-00011"

    def test_order_placed_event_published_after_commit(self, storefront, place_order, make_item, cash_enabled):
        result = place_order([(make_item(), 1)])
        placed = [e for e in storefront.published if e.event_type == ORDER_PLACED_V1]
        assert len(placed) == 1
        assert placed[0].payload["order_id"] == str(result.order.id)
        assert placed[0].payload["status"] == "PENDING"

    def test_checkout_refuses_outer_transaction(self, place_order, make_item, cash_enabled):
        widget = make_item()
        with pytest.raises(RuntimeError):
            with transaction.atomic():
                place_order([(widget, 1)])


# ══════════════════════════════════════════════════════════════
# COUPONS
# ══════════════════════════════════════════════════════════════

class TestCheckoutCoupons:
    def test_capped_coupon_scenario_totals_33_60(
        self, place_order, make_item, cash_enabled, pricing_rules, tenant_id,
    ):
        Coupon.objects.create(
            tenant_id=tenant_id,
            code="save20",
            discount_type="PERCENT",
            value=Decimal("20"),
            max_discount_amount=Decimal("4.00"),
        )
        result = place_order([(make_item(), 3)], address=US, coupon="SAVE20")

        order = Order.objects.get(pk=result.order.id)
        assert order.coupon_code == "SAVE20"
        assert order.coupon_discount == Decimal("4.00")
        assert order.total_amount == Decimal("33.60")
        assert Coupon.objects.get(code="SAVE20").used_count == 1

    def test_last_use_goes_to_one_order_only(self, place_order, make_item, cash_enabled, tenant_id):
        Coupon.objects.create(
            tenant_id=tenant_id, code="ONCE", discount_type="FIXED",
            value=Decimal("1.00"), usage_limit=1,
        )
        widget = make_item(stock=10)

        first = place_order([(widget, 1)], coupon="ONCE")
        second = place_order([(widget, 1)], coupon="ONCE")

        assert first.order.coupon_discount == Decimal("1.00")
        assert second.order.coupon_code is None
        assert second.quote.coupon_rejection.code == ReasonCode.COUPON_USAGE_EXHAUSTED
        assert Coupon.objects.get(code="ONCE").used_count == 1

    def test_losing_the_coupon_race_aborts_the_order(
        self, storefront, make_item, cash_enabled, tenant_id,
    ):
        Coupon.objects.create(
            tenant_id=tenant_id, code="LAST", discount_type="FIXED",
            value=Decimal("2.00"), usage_limit=1,
        )
        widget = make_item(stock=5)
        lines = (LineRequest(item_id=widget.pk, quantity=1),)
        quote = storefront.pricing.price(tenant_id, widget.currency_id, lines, None, "LAST")

        # Someone else takes the last use after the quote was priced.
        Coupon.objects.filter(code="LAST").update(used_count=1)

        with pytest.raises(CouponInvalidError):
            storefront.assembler.checkout("buyer-1", tenant_id, lines, quote, "CASH")
        assert Order.objects.count() == 0
        widget.refresh_from_db()
        assert widget.stock_quantity == 5


# ══════════════════════════════════════════════════════════════
# FAILURES LEAVE NOTHING BEHIND
# ══════════════════════════════════════════════════════════════

class TestCheckoutFailures:
    def test_last_unit_sells_once(self, place_order, make_item, cash_enabled):
        ticket = make_item(stock=1)

        place_order([(ticket, 1)], user="buyer-1")
        with pytest.raises(InsufficientStockError) as exc:
            place_order([(ticket, 1)], user="buyer-2")

        assert exc.value.available == 0
        assert Order.objects.count() == 1
        ticket.refresh_from_db()
        assert ticket.stock_quantity == 0

    def test_simultaneous_checkouts_sell_last_unit_once(self, place_order, make_item, cash_enabled):
        ticket = make_item(stock=1)
        start = threading.Barrier(2)
        placed, refused, unexpected = [], [], []

        def buy(user):
            try:
                start.wait(timeout=10)
                placed.append(place_order([(ticket, 1)], user=user))
            except InsufficientStockError as exc:
                refused.append(exc)
            except Exception as exc:  # noqa: BLE001
                unexpected.append(exc)
            finally:
                connections.close_all()

        buyers = [threading.Thread(target=buy, args=(f"buyer-{n}",)) for n in (1, 2)]
        for thread in buyers:
            thread.start()
        for thread in buyers:
            thread.join(timeout=60)

        assert unexpected == []
        assert len(placed) == 1
        assert len(refused) == 1
        assert refused[0].available == 0
        assert Order.objects.count() == 1
        ticket.refresh_from_db()
        assert ticket.stock_quantity == 0

    def test_shortfall_on_one_line_rolls_back_all(self, place_order, make_item, cash_enabled):
        plenty = make_item(stock=10)
        scarce = make_item(stock=1)

        with pytest.raises(InsufficientStockError):
            place_order([(plenty, 2), (scarce, 2)])

        plenty.refresh_from_db()
        assert plenty.stock_quantity == 10
        assert Order.objects.count() == 0
        assert PaymentTransaction.objects.count() == 0

    def test_disabled_method_rejected_before_reserving(self, place_order, make_item, enable_method):
        enable_method("CASH", {}, enabled=False)
        widget = make_item(stock=3)

        with pytest.raises(PaymentMethodDisabledError) as exc:
            place_order([(widget, 1)])

        assert exc.value.code == ReasonCode.PAYMENT_METHOD_DISABLED
        widget.refresh_from_db()
        assert widget.stock_quantity == 3
        assert Order.objects.count() == 0

    def test_unknown_method_rejected(self, place_order, make_item, cash_enabled):
        with pytest.raises(PaymentMethodDisabledError) as exc:
            place_order([(make_item(), 1)], method="BITCOIN")
        assert exc.value.code == ReasonCode.PAYMENT_METHOD_UNKNOWN

    def test_item_priced_in_other_currency(self, place_order, make_item, cash_enabled, eur):
        with pytest.raises(CurrencyMismatchError):
            place_order([(make_item(currency=eur), 1)])

    def test_item_from_other_store(self, place_order, make_item, cash_enabled, other_tenant_id):
        with pytest.raises(ValidationError):
            place_order([(make_item(tenant=other_tenant_id), 1)])

    def test_empty_request_rejected(self, tenant_id, usd):
        with pytest.raises(ValidationError, match="empty"):
            CheckoutRequest(
                tenant_id=tenant_id, user_id="buyer-1", lines=(),
                currency_id=usd.pk, payment_method="CASH",
            )


# ══════════════════════════════════════════════════════════════
# ZERO TOTAL AND CART CHECKOUT
# ══════════════════════════════════════════════════════════════

class TestCheckoutVariants:
    def test_zero_total_order_completes_without_payment(
        self, storefront, place_order, make_item, cash_enabled,
    ):
        freebie = make_item(price="0.00", stock=2)
        result = place_order([(freebie, 1)])

        assert result.payment is None
        assert result.order.status == OrderStatus.COMPLETED
        assert Order.objects.get(pk=result.order.id).status == OrderStatus.COMPLETED
        assert PaymentTransaction.objects.count() == 0

    def test_cart_checkout_converts_the_cart(self, storefront, make_item, cash_enabled, tenant_id, usd):
        widget = make_item(price="4.00")
        view = storefront.cart.add_line("buyer-1", widget.pk, 2)

        result = storefront.checkout.checkout_cart(tenant_id, "buyer-1", usd.pk, "cash")

        assert result.order.total_amount == Decimal("8.00")
        assert storefront.cart.get_my_cart("buyer-1").cart_id != view.cart_id

    def test_cart_checkout_rejects_empty_cart(self, storefront, cash_enabled, tenant_id, usd):
        with pytest.raises(ValidationError, match="empty"):
            storefront.checkout.checkout_cart(tenant_id, "buyer-1", usd.pk, "CASH")

    def test_quote_from_cart(self, storefront, make_item, tenant_id, usd, pricing_rules):
        storefront.cart.add_line("buyer-1", make_item().pk, 3)
        quote = storefront.checkout.quote_from_cart(tenant_id, "buyer-1", usd.pk, US)
        assert quote.grand_total == Decimal("38.00")
