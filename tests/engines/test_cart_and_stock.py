"""
Cart aggregation and catalog stock primitives.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from django.db import transaction

from core.errors import (
    CurrencyMismatchError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from engines.cart.models import Cart, CartStatus
from engines.catalog.currency import CatalogCurrencyResolver
from engines.catalog.models import CatalogItem
from engines.catalog.stock import (
    decrement_stock_if_enough,
    lock_items,
    reserve_stock,
    restore_stock,
    sort_item_ids_ascending,
)
from engines.catalog.variants import describe_item

pytestmark = pytest.mark.django_db(transaction=True)


# ══════════════════════════════════════════════════════════════
# CART SERVICE
# ══════════════════════════════════════════════════════════════

class TestCartService:
    def test_one_active_cart_per_user(self, storefront):
        first = storefront.cart.get_or_create_active_cart("buyer-1")
        second = storefront.cart.get_or_create_active_cart("buyer-1")
        assert first.id == second.id
        assert Cart.objects.filter(user_id="buyer-1", status=CartStatus.ACTIVE).count() == 1

    def test_add_line_recomputes_total(self, storefront, make_item, tenant_id):
        widget = make_item(price="10.00")
        gadget = make_item(price="2.50", name="Gadget")

        storefront.cart.add_line("buyer-1", widget.pk, 2)
        view = storefront.cart.add_line("buyer-1", gadget.pk, 3)

        assert view.total_amount == Decimal("27.50")
        assert view.tenant_id == tenant_id
        assert view.currency_code == "USD"
        assert [line.quantity for line in view.lines] == [2, 3]

    def test_adding_same_item_merges_quantity(self, storefront, make_item):
        widget = make_item()
        storefront.cart.add_line("buyer-1", widget.pk, 1)
        view = storefront.cart.add_line("buyer-1", widget.pk, 4)
        assert len(view.lines) == 1
        assert view.lines[0].quantity == 5
        assert view.total_amount == Decimal("50.00")

    def test_rejects_non_positive_quantity(self, storefront, make_item):
        widget = make_item()
        with pytest.raises(ValidationError):
            storefront.cart.add_line("buyer-1", widget.pk, 0)

    def test_rejects_inactive_item(self, storefront, make_item):
        hidden = make_item(active=False)
        with pytest.raises(ValidationError, match="not available"):
            storefront.cart.add_line("buyer-1", hidden.pk, 1)

    def test_rejects_second_currency(self, storefront, make_item, eur):
        storefront.cart.add_line("buyer-1", make_item().pk, 1)
        with pytest.raises(CurrencyMismatchError) as exc:
            storefront.cart.add_line("buyer-1", make_item(currency=eur).pk, 1)
        assert exc.value.expected == "USD"
        assert exc.value.actual == "EUR"

    def test_rejects_item_from_another_store(self, storefront, make_item, other_tenant_id):
        storefront.cart.add_line("buyer-1", make_item().pk, 1)
        foreign = make_item(tenant=other_tenant_id)
        with pytest.raises(ValidationError, match="another store"):
            storefront.cart.add_line("buyer-1", foreign.pk, 1)

    def test_set_quantity_and_remove(self, storefront, make_item):
        widget = make_item()
        line_id = storefront.cart.add_line("buyer-1", widget.pk, 1).lines[0].line_id

        view = storefront.cart.set_line_quantity("buyer-1", line_id, 3)
        assert view.total_amount == Decimal("30.00")

        view = storefront.cart.remove_line("buyer-1", line_id)
        assert view.lines == ()
        assert view.total_amount == Decimal("0.00")
        assert view.currency_code is None
        assert view.tenant_id is None

    def test_unknown_line_is_not_found(self, storefront):
        storefront.cart.get_or_create_active_cart("buyer-1")
        with pytest.raises(NotFoundError):
            storefront.cart.set_line_quantity("buyer-1", 999999, 1)

    def test_clear_keeps_the_cart(self, storefront, make_item):
        view = storefront.cart.add_line("buyer-1", make_item().pk, 2)
        cleared = storefront.cart.clear("buyer-1")
        assert cleared.cart_id == view.cart_id
        assert cleared.lines == ()

    def test_line_price_is_a_snapshot(self, storefront, make_item):
        widget = make_item(price="10.00")
        storefront.cart.add_line("buyer-1", widget.pk, 1)
        CatalogItem.objects.filter(pk=widget.pk).update(price=Decimal("99.00"))
        view = storefront.cart.get_my_cart("buyer-1")
        assert view.lines[0].unit_price == Decimal("10.00")

    def test_mark_converted_starts_fresh_cart(self, storefront, make_item):
        view = storefront.cart.add_line("buyer-1", make_item().pk, 1)
        storefront.cart.mark_converted(view.cart_id)

        assert Cart.objects.get(pk=view.cart_id).status == CartStatus.CONVERTED
        fresh = storefront.cart.get_my_cart("buyer-1")
        assert fresh.cart_id != view.cart_id
        assert fresh.lines == ()

    def test_blank_user_rejected(self, storefront):
        with pytest.raises(ValidationError):
            storefront.cart.get_my_cart("  ")

    def test_view_serializes_money_as_strings(self, storefront, make_item):
        data = storefront.cart.add_line("buyer-1", make_item(price="3.10").pk, 3).to_dict()
        assert data["total_amount"] == "9.30"
        assert data["lines"][0]["line_subtotal"] == "9.30"


# ══════════════════════════════════════════════════════════════
# STOCK
# ══════════════════════════════════════════════════════════════

class TestStock:
    def test_lock_order_is_ascending_and_unique(self):
        assert sort_item_ids_ascending([9, 3, 9, 1]) == [1, 3, 9]

    def test_conditional_decrement(self, make_item):
        item = make_item(stock=2)
        assert decrement_stock_if_enough(item.pk, 2) is True
        assert decrement_stock_if_enough(item.pk, 1) is False
        item.refresh_from_db()
        assert item.stock_quantity == 0

    def test_untracked_stock_never_decrements(self, make_item):
        item = make_item(stock=None)
        assert decrement_stock_if_enough(item.pk, 1) is False

    def test_lock_items_requires_transaction(self, make_item):
        item = make_item()
        with pytest.raises(RuntimeError):
            lock_items([item.pk])

    def test_reserve_rolls_back_with_transaction(self, make_item):
        plenty = make_item(stock=5)
        scarce = make_item(stock=1)
        quantities = {plenty.pk: 2, scarce.pk: 3}

        with pytest.raises(InsufficientStockError) as exc:
            with transaction.atomic():
                reserve_stock(lock_items(quantities), quantities)

        assert exc.value.item_id == scarce.pk
        assert exc.value.available == 1
        plenty.refresh_from_db()
        assert plenty.stock_quantity == 5

    def test_reserve_skips_untracked_items(self, make_item):
        tracked = make_item(stock=3)
        untracked = make_item(stock=None)
        quantities = {tracked.pk: 1, untracked.pk: 50}
        with transaction.atomic():
            reserve_stock(lock_items(quantities), quantities)
        tracked.refresh_from_db()
        untracked.refresh_from_db()
        assert tracked.stock_quantity == 2
        assert untracked.stock_quantity is None

    def test_restore_gives_units_back(self, make_item):
        item = make_item(stock=1)
        restore_stock({item.pk: 4})
        item.refresh_from_db()
        assert item.stock_quantity == 5

    def test_lock_items_names_missing_item(self):
        with pytest.raises(ValidationError) as exc:
            with transaction.atomic():
                lock_items([424242])
        assert exc.value.details["item_id"] == 424242


# ══════════════════════════════════════════════════════════════
# CATALOG
# ══════════════════════════════════════════════════════════════

class TestCatalog:
    def test_activity_display_name_includes_schedule(self, make_item):
        item = make_item(
            kind="ACTIVITY",
            name="Kayak tour",
            location="Harbour",
            starts_at=datetime(2026, 5, 2, 9, 30, tzinfo=timezone.utc),
        )
        assert describe_item(item).display_name() == "Kayak tour · 2026-05-02 09:30 · Harbour"

    def test_product_without_image_has_none(self, make_item):
        assert describe_item(make_item()).image_url() is None

    def test_currency_resolver(self, usd, tenant_id):
        resolver = CatalogCurrencyResolver()
        assert resolver.resolve(tenant_id, usd.pk).code == "USD"
        with pytest.raises(ValidationError):
            resolver.resolve(tenant_id, 987654)
