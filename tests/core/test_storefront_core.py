"""
Core plumbing: event bus, settings, clock and error → HTTP mapping.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from django.db import transaction

from core.config import StorefrontSettings, settings_from_mapping
from core.errors import (
    CouponInvalidError,
    CurrencyMismatchError,
    ForbiddenError,
    GatewayConfigError,
    InsufficientStockError,
    InvalidTransitionError,
    MalformedCallbackError,
    NotFoundError,
    PaymentDeclinedError,
    PaymentMethodDisabledError,
    StorefrontError,
    ValidationError,
)
from core.events import (
    DomainEvent,
    DuplicateSubscriberError,
    EventBusError,
    InvalidEventTypeFormat,
    SubscriberRegistry,
    dispatch,
    publish_after_commit,
)
from core.http_api.errors import (
    error_response,
    rejection_response,
    status_for_error,
    storefront_error_response,
)
from core.http_api.handlers import camelize
from core.policy.rejection import ReasonCode, RejectionReason
from core.time.clock import FixedClock, get_default_clock, now_utc, set_default_clock

TENANT = uuid.uuid5(uuid.NAMESPACE_URL, "storefront-core-tenant")
EVENT_TYPE = "storefront.order.completed.v1"


def _event(**overrides):
    fields = {
        "event_type": EVENT_TYPE,
        "tenant_id": TENANT,
        "aggregate_id": "order-1",
        "payload": {"order_code": "SHOP-2603-00001"},
    }
    fields.update(overrides)
    return DomainEvent(**fields)


# ══════════════════════════════════════════════════════════════
# EVENT BUS
# ══════════════════════════════════════════════════════════════

class TestSubscriberRegistry:
    def test_event_type_needs_three_parts(self):
        registry = SubscriberRegistry()
        for bad in ("", "order", "order.completed", "storefront..completed"):
            with pytest.raises(InvalidEventTypeFormat):
                registry.register_subscriber(bad, lambda e: None, "bad")

    def test_duplicate_handler_rejected(self):
        registry = SubscriberRegistry()

        def handler(event):
            pass

        registry.register_subscriber(EVENT_TYPE, handler, "first")
        with pytest.raises(DuplicateSubscriberError):
            registry.register_subscriber(EVENT_TYPE, handler, "again")

    def test_handler_must_be_callable(self):
        with pytest.raises(EventBusError):
            SubscriberRegistry().register_subscriber(EVENT_TYPE, "not callable", "x")

    def test_multiple_subscribers_kept_in_order(self):
        registry = SubscriberRegistry()
        registry.register_subscriber(EVENT_TYPE, lambda e: None, "a")
        registry.register_subscriber(EVENT_TYPE, lambda e: None, "b")
        assert [name for _, name in registry.get_subscribers(EVENT_TYPE)] == ["a", "b"]
        assert registry.subscriber_count(EVENT_TYPE) == 2


class TestDispatch:
    def test_failing_subscriber_does_not_stop_others(self):
        registry = SubscriberRegistry()
        received = []

        def broken(event):
            raise RuntimeError("mail server down")

        registry.register_subscriber(EVENT_TYPE, broken, "mailer")
        registry.register_subscriber(EVENT_TYPE, received.append, "recorder")

        result = dispatch(_event(), registry)

        assert result["subscribers_notified"] == 1
        assert result["subscribers_failed"] == 1
        assert result["failures"][0]["subscriber"] == "mailer"
        assert result["failures"][0]["error_type"] == "RuntimeError"
        assert len(received) == 1

    def test_no_subscribers(self):
        result = dispatch(_event(), SubscriberRegistry())
        assert result["subscribers_notified"] == 0
        assert result["failures"] == []

    def test_event_validation(self):
        with pytest.raises(ValueError):
            _event(tenant_id="not-a-uuid")
        with pytest.raises(ValueError):
            _event(aggregate_id="")


@pytest.mark.django_db(transaction=True)
class TestPublishAfterCommit:
    def test_delivered_only_after_commit(self):
        registry = SubscriberRegistry()
        received = []
        registry.register_subscriber(EVENT_TYPE, received.append, "recorder")

        with transaction.atomic():
            publish_after_commit(_event(), registry)
            assert received == []
        assert len(received) == 1

    def test_dropped_on_rollback(self):
        registry = SubscriberRegistry()
        received = []
        registry.register_subscriber(EVENT_TYPE, received.append, "recorder")

        with pytest.raises(RuntimeError):
            with transaction.atomic():
                publish_after_commit(_event(), registry)
                raise RuntimeError("order write failed")
        assert received == []

    def test_without_registry_is_noop(self):
        publish_after_commit(_event(), None)


# ══════════════════════════════════════════════════════════════
# SETTINGS
# ══════════════════════════════════════════════════════════════

class TestSettings:
    def test_defaults(self):
        settings = settings_from_mapping({})
        assert settings.reservation_timeout_minutes == 30
        assert settings.stripe_platform_fee_pct == Decimal("10")
        assert settings.paypal_api_base["LIVE"] == "https://api-m.paypal.com"
        assert settings.reservation_sweep_enabled

    def test_overrides(self):
        settings = settings_from_mapping(
            {
                "RESERVATION_TIMEOUT_MINUTES": None,
                "STRIPE_PLATFORM_FEE_PCT": "2.9",
                "PAYMENT_RETURN_URL": "https://shop.test/ok",
                "HTTP_TIMEOUT_SECONDS": 5,
            }
        )
        assert settings.reservation_timeout_minutes is None
        assert not settings.reservation_sweep_enabled
        assert settings.stripe_platform_fee_pct == Decimal("2.9")
        assert settings.payment_return_url == "https://shop.test/ok"
        assert settings.http_timeout_seconds == 5.0

    @pytest.mark.parametrize(
        "raw",
        [
            {"RESERVATION_TIMEOUT_MINUTES": -1},
            {"STRIPE_PLATFORM_FEE_PCT": "abc"},
            {"STRIPE_PLATFORM_FEE_PCT": "101"},
            {"HTTP_TIMEOUT_SECONDS": 0},
        ],
    )
    def test_invalid_values(self, raw):
        with pytest.raises(ValueError):
            settings_from_mapping(raw)

    def test_loaded_from_django_settings(self, settings):
        from core.config import load_storefront_settings

        settings.STOREFRONT = {"RESERVATION_TIMEOUT_MINUTES": 45}
        assert load_storefront_settings().reservation_timeout_minutes == 45

    def test_zero_timeout_disables_sweep(self):
        assert not StorefrontSettings(reservation_timeout_minutes=0).reservation_sweep_enabled


# ══════════════════════════════════════════════════════════════
# CLOCK
# ══════════════════════════════════════════════════════════════

class TestClock:
    def test_fixed_clock_requires_aware_datetime(self):
        with pytest.raises(ValueError):
            FixedClock(datetime(2026, 3, 1))

    def test_advance(self):
        start = datetime(2026, 3, 1, tzinfo=timezone.utc)
        clock = FixedClock(start)
        clock.advance(minutes=45)
        assert clock.now_utc() == start + timedelta(minutes=45)

    def test_default_clock_override(self):
        original = get_default_clock()
        pinned = FixedClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        try:
            set_default_clock(pinned)
            assert now_utc() == pinned.now_utc()
        finally:
            set_default_clock(original)


# ══════════════════════════════════════════════════════════════
# ERROR MAPPING
# ══════════════════════════════════════════════════════════════

class TestErrorMapping:
    @pytest.mark.parametrize(
        "error, status",
        [
            (InsufficientStockError(7, requested=3, available=1), 409),
            (CurrencyMismatchError("USD", "EUR"), 400),
            (CouponInvalidError("SAVE", ReasonCode.COUPON_EXPIRED, "Coupon expired."), 400),
            (ValidationError("bad"), 400),
            (MalformedCallbackError("bad body"), 400),
            (PaymentDeclinedError("declined"), 402),
            (PaymentMethodDisabledError("off"), 403),
            (ForbiddenError("no"), 403),
            (NotFoundError("gone"), 404),
            (InvalidTransitionError("nope"), 409),
            (GatewayConfigError("misconfigured"), 503),
            (StorefrontError("boom"), 500),
        ],
    )
    def test_status_for_error(self, error, status):
        assert status_for_error(error) == status

    def test_stock_error_payload_names_item(self):
        status, payload = storefront_error_response(
            InsufficientStockError(7, requested=3, available=1)
        )
        assert status == 409
        assert payload["ok"] is False
        assert payload["error"]["code"] == "INSUFFICIENT_STOCK"
        assert payload["error"]["details"]["item_id"] == 7

    def test_rejection_response(self):
        reason = RejectionReason(
            code=ReasonCode.ORDER_TERMINAL,
            message="Order is closed.",
            policy_name="transition_policy",
        )
        payload = rejection_response(reason, extra_details={"order_id": "o-1"})
        assert payload["error"]["details"] == {
            "policy_name": "transition_policy",
            "message_key": f"rejection.{ReasonCode.ORDER_TERMINAL.lower()}",
            "order_id": "o-1",
        }

    def test_from_rejection_keeps_code(self):
        reason = RejectionReason(
            code=ReasonCode.NOT_ORDER_OWNER,
            message="Not your order.",
            policy_name="order_owner_policy",
        )
        error = ForbiddenError.from_rejection(reason, order_id="o-1")
        assert error.code == ReasonCode.NOT_ORDER_OWNER
        assert error.details == {"policy_name": "order_owner_policy", "order_id": "o-1"}

    def test_error_body_requires_message(self):
        with pytest.raises(ValueError):
            error_response(code="X", message="")


class TestCamelize:
    def test_nested_keys(self):
        assert camelize(
            {"order_id": 1, "lines": [{"line_subtotal": "9.30"}], "quote": {"grand_total": "1"}}
        ) == {"orderId": 1, "lines": [{"lineSubtotal": "9.30"}], "quote": {"grandTotal": "1"}}

    def test_values_untouched(self):
        assert camelize({"status": "OFFLINE_PENDING"}) == {"status": "OFFLINE_PENDING"}
