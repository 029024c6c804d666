"""
HTTP surface through the Django test client.

Services are the hand-wired test stack from conftest, installed in place
of the lazily built production wiring.
"""

from __future__ import annotations

import json
import uuid

import pytest
from django.test import Client

from adapters.django_api import install_dependencies
from core.http_api.dependencies import HttpApiDependencies
from engines.orders.models import Order, OrderStatus
from engines.payments.gateways import sign_payload
from engines.payments.models import PaymentTransaction

pytestmark = pytest.mark.django_db(transaction=True)

CASH_SECRET = "cash-callback-secret"


@pytest.fixture
def api(storefront, tenant_id):
    install_dependencies(
        HttpApiDependencies(
            cart_service=storefront.cart,
            pricing_engine=storefront.pricing,
            checkout_service=storefront.checkout,
            lifecycle=storefront.lifecycle,
            orchestrator=storefront.orchestrator,
            reconciliation=storefront.reconciliation,
            payment_methods=storefront.directory,
            clock=storefront.clock,
        )
    )
    client = Client()

    def call(method, path, body=None, *, tenant=tenant_id, user="buyer-1", raw=None, headers=None):
        sent = {}
        if tenant is not None:
            sent["X-Tenant-Id"] = str(tenant)
        if user is not None:
            sent["X-User-Id"] = user
        sent.update(headers or {})
        url = f"/v1/{path}"
        if method == "GET":
            response = client.get(url, headers=sent)
        else:
            data = raw if raw is not None else json.dumps(body or {})
            response = client.post(url, data=data, content_type="application/json", headers=sent)
        return response.status_code, response.json()

    yield call
    install_dependencies(None)


def _checkout(api, item, qty=1, **extra):
    body = {
        "lines": [{"itemId": item.pk, "qty": qty}],
        "currencyId": item.currency_id,
        "paymentMethod": "CASH",
        **extra,
    }
    return api("POST", "checkout", body)


# ══════════════════════════════════════════════════════════════
# CART
# ══════════════════════════════════════════════════════════════

class TestCartEndpoints:
    def test_add_update_and_clear(self, api, make_item):
        widget = make_item(price="4.00")

        status, payload = api("POST", "cart/lines", {"itemId": widget.pk, "qty": 2})
        assert status == 200
        assert payload["ok"] is True
        cart = payload["data"]
        assert cart["totalAmount"] == "8.00"
        line_id = cart["lines"][0]["lineId"]

        status, payload = api("POST", f"cart/lines/{line_id}", {"qty": 5})
        assert payload["data"]["lines"][0]["lineSubtotal"] == "20.00"

        status, payload = api("GET", "cart")
        assert payload["data"]["currencyCode"] == "USD"

        status, payload = api("POST", f"cart/lines/{line_id}/remove")
        assert payload["data"]["lines"] == []

        status, payload = api("POST", "cart/clear")
        assert status == 200

    def test_user_header_required(self, api, make_item):
        status, payload = api("POST", "cart/lines", {"itemId": make_item().pk, "qty": 1}, user=None)
        assert status == 400
        assert payload["error"]["code"] == "INVALID_REQUEST"

    def test_tenant_header_required(self, api):
        status, payload = api("GET", "cart", tenant=None)
        assert status == 400
        assert "X-Tenant-Id" in payload["error"]["message"]

    def test_bad_json_body(self, api):
        status, payload = api("POST", "cart/lines", raw="{not json")
        assert status == 400

    def test_missing_field(self, api):
        status, payload = api("POST", "cart/lines", {"itemId": 1})
        assert status == 400
        assert "qty" in payload["error"]["message"]

    def test_wrong_method(self, api):
        status, payload = api("POST", "cart")
        assert status == 405
        assert payload["error"]["code"] == "METHOD_NOT_ALLOWED"

    def test_invalid_quantity_is_validation_error(self, api, make_item):
        status, payload = api("POST", "cart/lines", {"itemId": make_item().pk, "qty": 0})
        assert status == 400
        assert payload["error"]["code"] == "VALIDATION_ERROR"


# ══════════════════════════════════════════════════════════════
# CHECKOUT
# ══════════════════════════════════════════════════════════════

class TestCheckoutEndpoints:
    def test_quote_from_lines(self, api, make_item):
        widget = make_item(price="10.00")
        status, payload = api(
            "POST",
            "checkout/quote",
            {"lines": [{"itemId": widget.pk, "qty": 3}], "currencyId": widget.currency_id},
        )
        assert status == 200
        quote = payload["data"]
        assert quote["itemsSubtotal"] == "30.00"
        assert quote["grandTotal"] == "30.00"
        assert "shippingMethods" not in quote

    def test_checkout_with_cash(self, api, make_item, cash_enabled):
        status, payload = _checkout(api, make_item(price="10.00"), qty=2)

        assert status == 200
        data = payload["data"]
        assert data["status"] == OrderStatus.PENDING
        assert data["grandTotal"] == "20.00"
        assert data["paymentStatus"] == "OFFLINE_PENDING"
        assert data["clientContinuation"] == {"type": "offline", "instructions": "Pay at pickup."}
        assert Order.objects.filter(code=data["orderCode"]).exists()

    def test_insufficient_stock_is_conflict(self, api, make_item, cash_enabled):
        widget = make_item(stock=1)
        status, payload = _checkout(api, widget, qty=2)

        assert status == 409
        assert payload["error"]["code"] == "INSUFFICIENT_STOCK"
        assert payload["error"]["details"]["itemId"] == widget.pk
        assert not Order.objects.exists()

    def test_disabled_method_is_forbidden(self, api, make_item):
        status, payload = _checkout(api, make_item())
        assert status == 403
        assert payload["error"]["code"] == "PAYMENT_METHOD_DISABLED"

    def test_checkout_from_cart(self, api, make_item, cash_enabled):
        widget = make_item(price="3.00")
        api("POST", "cart/lines", {"itemId": widget.pk, "qty": 4})

        status, payload = api(
            "POST", "checkout/cart", {"currencyId": widget.currency_id, "paymentMethod": "CASH"},
        )
        assert status == 200
        assert payload["data"]["grandTotal"] == "12.00"

        status, payload = api("GET", "cart")
        assert payload["data"]["lines"] == []


# ══════════════════════════════════════════════════════════════
# ORDERS
# ══════════════════════════════════════════════════════════════

class TestOrderEndpoints:
    def test_buyer_reads_own_order(self, api, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]

        status, payload = api("GET", f"orders/{order_id}")
        assert status == 200
        order = payload["data"]
        assert order["orderId"] == order_id
        assert order["lines"][0]["unitPriceAtPurchase"] == "10.00"
        assert order["payment"]["state"] == "UNPAID"

    def test_other_buyer_is_forbidden(self, api, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]
        status, payload = api("GET", f"orders/{order_id}", user="buyer-2")
        assert status == 403
        assert payload["error"]["code"] == "NOT_ORDER_OWNER"

    def test_owner_reads_without_user(self, api, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]
        status, _ = api("GET", f"orders/{order_id}", user=None)
        assert status == 200

    def test_other_tenant_gets_not_found(self, api, make_item, cash_enabled, other_tenant_id):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]
        status, payload = api("GET", f"orders/{order_id}", tenant=other_tenant_id)
        assert status == 404

    def test_cancel_flow(self, api, make_item, cash_enabled):
        widget = make_item(stock=5)
        order_id = _checkout(api, widget, qty=2)[1]["data"]["orderId"]

        status, payload = api("POST", f"orders/{order_id}/cancel-request")
        assert payload["data"]["status"] == OrderStatus.CANCEL_REQUESTED
        assert payload["data"]["cancelRequestedAt"] is not None

        status, payload = api("POST", f"orders/{order_id}/cancel-approve", user=None)
        assert payload["data"]["status"] == OrderStatus.CANCELED
        widget.refresh_from_db()
        assert widget.stock_quantity == 5

        status, payload = api("POST", f"orders/{order_id}/refund", user=None)
        assert payload["data"]["status"] == OrderStatus.REFUNDED

        status, payload = api("POST", f"orders/{order_id}/reject", user=None)
        assert status == 409
        assert payload["error"]["code"] == "ORDER_TERMINAL"

    def test_owner_rejects_with_reason(self, api, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]
        status, payload = api("POST", f"orders/{order_id}/reject", {"reason": "Sold out"}, user=None)
        assert status == 200
        assert payload["data"]["status"] == OrderStatus.REJECTED

    def test_cash_paid_completes(self, api, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]

        status, payload = api("POST", f"orders/{order_id}/cash-paid", user=None)

        assert status == 200
        assert payload["data"]["reconciliation"]["outcome"] == "APPLIED"
        assert payload["data"]["order"]["status"] == OrderStatus.COMPLETED
        assert payload["data"]["order"]["payment"]["state"] == "PAID"

    def test_release_abandoned(self, api, storefront, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]
        storefront.clock.advance(minutes=31)

        status, payload = api("POST", "orders/release-abandoned", user=None)

        assert status == 200
        assert payload["data"] == {"releasedOrderIds": [order_id], "count": 1}

    def test_release_abandoned_requires_tenant(self, api, storefront, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]
        storefront.clock.advance(minutes=31)

        status, payload = api("POST", "orders/release-abandoned", tenant=None, user=None)

        assert status == 400
        assert payload["error"]["code"] == "INVALID_REQUEST"
        assert Order.objects.get(pk=order_id).status == OrderStatus.PENDING

    def test_malformed_order_id_not_routed(self, api):
        status = Client().get("/v1/orders/not-a-uuid").status_code
        assert status == 404


# ══════════════════════════════════════════════════════════════
# PAYMENTS
# ══════════════════════════════════════════════════════════════

class TestPaymentEndpoints:
    def test_methods_list_hides_secrets(self, api, cash_enabled):
        status, payload = api("GET", "payments/methods")
        assert status == 200
        assert payload["data"]["methods"] == [
            {
                "providerCode": "CASH",
                "displayName": "Cash on delivery",
                "config": {"instructions": "Pay at pickup."},
            }
        ]

    def test_start_payment_amount_mismatch(self, api, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]
        status, payload = api(
            "POST",
            "payments/start",
            {"orderId": order_id, "paymentMethod": "CASH", "amount": "1.00"},
        )
        assert status == 400
        assert payload["error"]["code"] == "AMOUNT_MISMATCH"

    def test_start_payment_for_unknown_order(self, api, cash_enabled):
        status, payload = api(
            "POST", "payments/start", {"orderId": str(uuid.uuid4()), "paymentMethod": "CASH"},
        )
        assert status == 404

    def test_start_payment_requires_tenant(self, api):
        status, payload = api(
            "POST", "payments/start",
            {"orderId": str(uuid.uuid4()), "paymentMethod": "CASH"},
            tenant=None,
        )
        assert status == 400

    def test_webhook_applies_signed_cash_callback(self, api, make_item, cash_enabled):
        order_id = _checkout(api, make_item())[1]["data"]["orderId"]
        reference = PaymentTransaction.objects.get(order_id=order_id).provider_reference
        body = json.dumps({"reference": reference, "status": "PAID", "event_id": "pos-9"})

        status, payload = api(
            "POST",
            "payments/webhook/cash",
            raw=body,
            tenant=None,
            user=None,
            headers={"X-Storefront-Signature": sign_payload(body.encode(), CASH_SECRET)},
        )

        assert status == 200
        assert payload["data"]["outcome"] == "APPLIED"
        assert payload["data"]["orderStatus"] == OrderStatus.COMPLETED

    def test_webhook_unknown_reference_still_200(self, api):
        body = json.dumps({"reference": "CASH-NOPE", "status": "PAID"})
        status, payload = api("POST", "payments/webhook/CASH", raw=body, tenant=None, user=None)
        assert status == 200
        assert payload["data"]["outcome"] == "DISCARDED"

    def test_webhook_malformed_body_is_400(self, api):
        status, payload = api("POST", "payments/webhook/CASH", raw="garbage", tenant=None, user=None)
        assert status == 400
        assert payload["error"]["code"] == "MALFORMED_CALLBACK"

    def test_webhook_unexpected_failure_is_200(self, api, monkeypatch, storefront):
        def explode(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(storefront.reconciliation, "reconcile", explode)
        status, payload = api("POST", "payments/webhook/CASH", raw="{}", tenant=None, user=None)
        assert status == 200
        assert payload["data"] == {"outcome": "ERROR"}
