"""
Shared storefront test fixtures.

Every service is wired by hand against a FixedClock and a recording
subscriber registry, so tests can assert on emitted order events.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from core.config import StorefrontSettings
from core.events import SubscriberRegistry
from core.time.clock import FixedClock

TENANT_ID = uuid.uuid5(uuid.NAMESPACE_URL, "storefront-tests-tenant")
OTHER_TENANT_ID = uuid.uuid5(uuid.NAMESPACE_URL, "storefront-tests-other-tenant")
BUYER_ID = "buyer-1"
CASH_SECRET = "cash-callback-secret"
FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def tenant_id():
    return TENANT_ID


@pytest.fixture
def other_tenant_id():
    return OTHER_TENANT_ID


@pytest.fixture
def buyer_id():
    return BUYER_ID


@pytest.fixture
def clock():
    return FixedClock(FIXED_NOW)


@pytest.fixture
def usd(transactional_db):
    from engines.catalog.models import Currency

    return Currency.objects.create(code="USD", symbol="$")


@pytest.fixture
def eur(transactional_db):
    from engines.catalog.models import Currency

    return Currency.objects.create(code="EUR", symbol="€")


@pytest.fixture
def make_item(usd):
    from engines.catalog.models import CatalogItem

    def _make(
        *,
        price="10.00",
        stock=10,
        tenant=TENANT_ID,
        currency=None,
        name="Widget",
        kind="PRODUCT",
        weight=None,
        active=True,
        **extra,
    ):
        return CatalogItem.objects.create(
            tenant_id=tenant,
            kind=kind,
            name=name,
            price=Decimal(price),
            currency=currency or usd,
            stock_quantity=stock,
            weight_kg=None if weight is None else Decimal(weight),
            active=active,
            **extra,
        )

    return _make


@pytest.fixture
def enable_method(transactional_db):
    from engines.payments.models import PaymentMethodConfig

    def _enable(provider_code, config=None, *, tenant=TENANT_ID, enabled=True):
        return PaymentMethodConfig.objects.create(
            tenant_id=tenant,
            provider_code=provider_code,
            enabled=enabled,
            config_json=config or {},
        )

    return _enable


@pytest.fixture
def cash_enabled(enable_method):
    return enable_method(
        "CASH",
        {"callback_secret": CASH_SECRET, "instructions": "Pay at pickup."},
    )


@pytest.fixture
def storefront(transactional_db, clock):
    """The checkout stack with only the cash gateway registered."""
    from engines.cart.services import CartService
    from engines.orders.events import ORDER_EVENT_TYPES
    from engines.orders.services import (
        CheckoutService,
        OrderAssembler,
        OrderLifecycleService,
    )
    from engines.payments.gateways import CashGateway, GatewayRegistry
    from engines.payments.services import (
        PaymentMethodDirectory,
        PaymentOrchestrator,
        ReconciliationHandler,
    )
    from engines.pricing.config_store import DjangoPricingConfigStore
    from engines.pricing.services import PricingEngine

    settings = StorefrontSettings(reservation_timeout_minutes=30)
    events = SubscriberRegistry()
    published = []

    def record(event):
        published.append(event)

    for event_type in ORDER_EVENT_TYPES:
        events.register_subscriber(event_type, record, "test-recorder")

    gateways = GatewayRegistry()
    gateways.register(CashGateway())
    directory = PaymentMethodDirectory(gateways)

    pricing = PricingEngine(DjangoPricingConfigStore(), clock=clock)
    cart = CartService()
    lifecycle = OrderLifecycleService(
        clock=clock, event_registry=events, settings=settings,
    )
    orchestrator = PaymentOrchestrator(directory, clock=clock)
    assembler = OrderAssembler(directory, clock=clock, event_registry=events)
    checkout = CheckoutService(
        pricing, assembler, orchestrator, cart_service=cart, lifecycle=lifecycle,
    )
    reconciliation = ReconciliationHandler(gateways, directory, lifecycle, clock=clock)

    return SimpleNamespace(
        settings=settings,
        events=events,
        published=published,
        gateways=gateways,
        directory=directory,
        pricing=pricing,
        cart=cart,
        lifecycle=lifecycle,
        orchestrator=orchestrator,
        assembler=assembler,
        checkout=checkout,
        reconciliation=reconciliation,
        clock=clock,
    )


@pytest.fixture
def place_order(storefront, usd):
    """Check out (item, qty) pairs for the buyer through the full flow."""
    from engines.orders.services import CheckoutRequest
    from engines.pricing.services import LineRequest

    def _place(
        pairs,
        *,
        user=BUYER_ID,
        method="CASH",
        coupon=None,
        address=None,
        tenant=TENANT_ID,
        currency=None,
    ):
        request = CheckoutRequest(
            tenant_id=tenant,
            user_id=user,
            lines=tuple(LineRequest(item_id=item.pk, quantity=qty) for item, qty in pairs),
            currency_id=(currency or usd).pk,
            payment_method=method,
            coupon_code=coupon,
            shipping_address=address,
        )
        return storefront.checkout.checkout(request)

    return _place
