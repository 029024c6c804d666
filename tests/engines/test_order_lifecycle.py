"""
Order state machine, owner/buyer operations and reservation expiry.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from core.config import StorefrontSettings
from core.errors import ForbiddenError, InvalidTransitionError, NotFoundError
from core.policy.rejection import ReasonCode
from engines.orders.events import (
    ORDER_CANCEL_REJECTED_V1,
    ORDER_CANCEL_REQUESTED_V1,
    ORDER_CANCELED_V1,
    ORDER_COMPLETED_V1,
    ORDER_REFUNDED_V1,
    ORDER_REJECTED_V1,
    resolve_status_event_type,
)
from engines.orders.models import Order, OrderStatus
from engines.orders.policies import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    is_terminal,
    transition_policy,
)
from engines.orders.services import RESERVATION_EXPIRED, OrderLifecycleService
from engines.payments.models import PaymentTransaction, TransactionStatus

pytestmark = pytest.mark.django_db(transaction=True)


def _status(order_id):
    return Order.objects.get(pk=order_id).status


def _stock(item):
    item.refresh_from_db()
    return item.stock_quantity


# ══════════════════════════════════════════════════════════════
# POLICY
# ══════════════════════════════════════════════════════════════

class TestTransitionPolicy:
    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {
            OrderStatus.COMPLETED,
            OrderStatus.REJECTED,
            OrderStatus.REFUNDED,
        }

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
    def test_terminal_statuses_never_move(self, terminal):
        for target in ALLOWED_TRANSITIONS:
            rejection = transition_policy(terminal, target)
            assert rejection is not None
            assert rejection.code == ReasonCode.ORDER_TERMINAL

    def test_allowed_edges(self):
        assert transition_policy(OrderStatus.PENDING, OrderStatus.COMPLETED) is None
        assert transition_policy(OrderStatus.CANCEL_REQUESTED, OrderStatus.PENDING) is None
        assert transition_policy(OrderStatus.CANCELED, OrderStatus.REFUNDED) is None

    def test_disallowed_edge(self):
        rejection = transition_policy(OrderStatus.PENDING, OrderStatus.REFUNDED)
        assert rejection.code == ReasonCode.TRANSITION_NOT_ALLOWED

    def test_canceled_is_not_terminal(self):
        assert not is_terminal(OrderStatus.CANCELED)

    def test_event_types(self):
        assert resolve_status_event_type("CANCEL_REQUESTED", "PENDING") == ORDER_CANCEL_REJECTED_V1
        assert resolve_status_event_type("PENDING", "COMPLETED") == ORDER_COMPLETED_V1


# ══════════════════════════════════════════════════════════════
# BUYER / OWNER OPERATIONS
# ══════════════════════════════════════════════════════════════

class TestCancellation:
    def test_buyer_requests_owner_approves_then_refunds(
        self, storefront, place_order, make_item, cash_enabled, tenant_id,
    ):
        widget = make_item(stock=5)
        order_id = place_order([(widget, 2)]).order.id
        assert _stock(widget) == 3

        lifecycle = storefront.lifecycle
        order = lifecycle.request_cancel(order_id, "buyer-1", tenant_id=tenant_id)
        assert order.status == OrderStatus.CANCEL_REQUESTED
        assert order.cancel_requested_at is not None

        lifecycle.approve_cancel(order_id, tenant_id)
        assert _status(order_id) == OrderStatus.CANCELED
        assert _stock(widget) == 5

        lifecycle.mark_refunded(order_id, tenant_id)
        assert _status(order_id) == OrderStatus.REFUNDED
        assert Order.objects.get(pk=order_id).refunded_at is not None

        types = [e.event_type for e in storefront.published]
        assert types[-3:] == [ORDER_CANCEL_REQUESTED_V1, ORDER_CANCELED_V1, ORDER_REFUNDED_V1]

    def test_only_the_buyer_may_request(self, storefront, place_order, make_item, cash_enabled, tenant_id):
        order_id = place_order([(make_item(), 1)]).order.id
        with pytest.raises(ForbiddenError) as exc:
            storefront.lifecycle.request_cancel(order_id, "someone-else", tenant_id=tenant_id)
        assert exc.value.code == ReasonCode.NOT_ORDER_OWNER
        assert _status(order_id) == OrderStatus.PENDING

    def test_reject_cancel_returns_to_pending(self, storefront, place_order, make_item, cash_enabled, tenant_id):
        widget = make_item(stock=4)
        order_id = place_order([(widget, 1)]).order.id
        storefront.lifecycle.request_cancel(order_id, "buyer-1")
        storefront.lifecycle.reject_cancel(order_id, tenant_id)

        assert _status(order_id) == OrderStatus.PENDING
        assert _stock(widget) == 3
        assert storefront.published[-1].event_type == ORDER_CANCEL_REJECTED_V1

    def test_owner_reject_restores_stock_with_reason(
        self, storefront, place_order, make_item, cash_enabled, tenant_id,
    ):
        widget = make_item(stock=4)
        order_id = place_order([(widget, 2)]).order.id

        storefront.lifecycle.owner_reject(order_id, tenant_id, reason="Out of season")

        assert _status(order_id) == OrderStatus.REJECTED
        assert _stock(widget) == 4
        event = storefront.published[-1]
        assert event.event_type == ORDER_REJECTED_V1
        assert event.payload["reason"] == "Out of season"

    def test_closing_unpaid_order_voids_open_attempt(
        self, storefront, place_order, make_item, cash_enabled, tenant_id,
    ):
        order_id = place_order([(make_item(), 1)]).order.id

        storefront.lifecycle.owner_reject(order_id, tenant_id, reason="Out of season")

        tx = PaymentTransaction.objects.get(order_id=order_id)
        assert tx.status == TransactionStatus.FAILED
        assert tx.failure_reason == "VOIDED:Out of season"

    def test_reject_cancel_keeps_attempt_open(
        self, storefront, place_order, make_item, cash_enabled, tenant_id,
    ):
        order_id = place_order([(make_item(), 1)]).order.id
        storefront.lifecycle.request_cancel(order_id, "buyer-1")
        storefront.lifecycle.reject_cancel(order_id, tenant_id)

        tx = PaymentTransaction.objects.get(order_id=order_id)
        assert tx.status == TransactionStatus.OFFLINE_PENDING

    def test_terminal_order_refuses_everything(
        self, storefront, place_order, make_item, cash_enabled, tenant_id,
    ):
        order_id = place_order([(make_item(), 1)]).order.id
        storefront.lifecycle.owner_reject(order_id, tenant_id)

        for operation in (
            lambda: storefront.lifecycle.request_cancel(order_id, "buyer-1"),
            lambda: storefront.lifecycle.approve_cancel(order_id, tenant_id),
            lambda: storefront.lifecycle.mark_refunded(order_id, tenant_id),
            lambda: storefront.lifecycle.owner_reject(order_id, tenant_id),
        ):
            with pytest.raises(InvalidTransitionError) as exc:
                operation()
            assert exc.value.code == ReasonCode.ORDER_TERMINAL
        assert _status(order_id) == OrderStatus.REJECTED

    def test_refund_requires_canceled(self, storefront, place_order, make_item, cash_enabled, tenant_id):
        order_id = place_order([(make_item(), 1)]).order.id
        with pytest.raises(InvalidTransitionError) as exc:
            storefront.lifecycle.mark_refunded(order_id, tenant_id)
        assert exc.value.code == ReasonCode.TRANSITION_NOT_ALLOWED

    def test_other_tenant_cannot_see_order(
        self, storefront, place_order, make_item, cash_enabled, other_tenant_id,
    ):
        order_id = place_order([(make_item(), 1)]).order.id
        with pytest.raises(NotFoundError):
            storefront.lifecycle.approve_cancel(order_id, other_tenant_id)
        with pytest.raises(NotFoundError):
            storefront.lifecycle.get_order(order_id, tenant_id=other_tenant_id)

    def test_paid_order_keeps_stock_when_canceled(
        self, storefront, place_order, make_item, cash_enabled, tenant_id,
    ):
        widget = make_item(stock=5)
        order_id = place_order([(widget, 2)]).order.id
        storefront.lifecycle.request_cancel(order_id, "buyer-1")
        # Payment lands while the cancel request is open.
        storefront.reconciliation.mark_cash_paid(order_id, tenant_id)
        assert _status(order_id) == OrderStatus.CANCEL_REQUESTED

        storefront.lifecycle.approve_cancel(order_id, tenant_id)
        assert _stock(widget) == 3


# ══════════════════════════════════════════════════════════════
# PAYMENT-DRIVEN COMPLETION
# ══════════════════════════════════════════════════════════════

class TestCompleteFromPayment:
    def test_unpaid_order_stays_pending(self, storefront, place_order, make_item, cash_enabled):
        order_id = place_order([(make_item(), 1)]).order.id
        assert storefront.lifecycle.complete_from_payment(order_id) == OrderStatus.PENDING

    def test_lookup_decides_full_payment(self, storefront, place_order, make_item, cash_enabled, clock):
        order_id = place_order([(make_item(price="10.00"), 1)]).order.id
        paid = {"amount": Decimal("9.99")}
        lifecycle = OrderLifecycleService(
            clock=clock,
            event_registry=storefront.events,
            paid_amount_lookup=lambda _order_id: paid["amount"],
        )

        assert lifecycle.complete_from_payment(order_id) == OrderStatus.PENDING
        paid["amount"] = Decimal("10.00")
        assert lifecycle.complete_from_payment(order_id) == OrderStatus.COMPLETED
        assert Order.objects.get(pk=order_id).completed_at == clock.now_utc()
        # Replays leave a terminal order alone.
        assert lifecycle.complete_from_payment(order_id) == OrderStatus.COMPLETED


# ══════════════════════════════════════════════════════════════
# RESERVATION EXPIRY
# ══════════════════════════════════════════════════════════════

class TestReleaseAbandoned:
    def test_releases_only_stale_unpaid_orders(
        self, storefront, place_order, make_item, cash_enabled, clock, tenant_id,
    ):
        widget = make_item(stock=10)
        stale = place_order([(widget, 2)]).order.id
        stale_paid = place_order([(widget, 1)]).order.id
        storefront.reconciliation.mark_cash_paid(stale_paid, tenant_id)
        clock.advance(minutes=20)
        fresh = place_order([(widget, 1)]).order.id
        clock.advance(minutes=15)

        released = storefront.lifecycle.release_abandoned_orders()

        assert released == [stale]
        assert _status(stale) == OrderStatus.REJECTED
        assert _status(stale_paid) == OrderStatus.COMPLETED
        assert _status(fresh) == OrderStatus.PENDING
        assert _stock(widget) == 8
        assert storefront.published[-1].payload["reason"] == RESERVATION_EXPIRED

    def test_release_can_be_scoped_to_tenant(
        self, storefront, place_order, make_item, cash_enabled, clock, other_tenant_id,
    ):
        place_order([(make_item(), 1)])
        clock.advance(hours=1)
        assert storefront.lifecycle.release_abandoned_orders(tenant_id=other_tenant_id) == []

    def test_disabled_sweep_releases_nothing(self, place_order, make_item, cash_enabled, clock):
        place_order([(make_item(), 1)])
        clock.advance(days=2)
        lifecycle = OrderLifecycleService(
            clock=clock, settings=StorefrontSettings(reservation_timeout_minutes=0),
        )
        assert lifecycle.release_abandoned_orders() == []
