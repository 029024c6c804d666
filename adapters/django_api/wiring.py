"""
Storefront Django Adapter Wiring
==================================
Constructs HttpApiDependencies for the running service.

This module is adapter-only glue:
- settings come from django.conf via core.config
- gateways are the real provider adapters
- order events go to a logging subscriber until a notification
  service registers its own handlers
"""

from __future__ import annotations

import logging
import threading

from core.config import load_storefront_settings
from core.events import DomainEvent, SubscriberRegistry
from core.http_api.dependencies import HttpApiDependencies
from core.time.clock import get_default_clock
from engines.cart.services import CartService
from engines.catalog.currency import CatalogCurrencyResolver
from engines.orders.events import ORDER_EVENT_TYPES
from engines.orders.services import (
    CheckoutService,
    OrderAssembler,
    OrderLifecycleService,
)
from engines.payments.gateways import build_gateway_registry
from engines.payments.services import (
    PaymentMethodDirectory,
    PaymentOrchestrator,
    ReconciliationHandler,
)
from engines.pricing.config_store import DjangoPricingConfigStore
from engines.pricing.services import PricingEngine

logger = logging.getLogger("storefront.events")

_DEPENDENCIES_LOCK = threading.Lock()
_DEPENDENCIES: HttpApiDependencies | None = None


def log_order_event(event: DomainEvent) -> None:
    logger.info(
        f"Notify tenant {event.tenant_id}: {event.event_type} "
        f"for order {event.payload.get('order_code')}"
    )


def _build_event_registry() -> SubscriberRegistry:
    registry = SubscriberRegistry()
    for event_type in ORDER_EVENT_TYPES:
        registry.register_subscriber(event_type, log_order_event, "order-notifications")
    return registry


def _create_dependencies() -> HttpApiDependencies:
    settings = load_storefront_settings()
    clock = get_default_clock()
    events = _build_event_registry()

    gateways = build_gateway_registry(settings)
    directory = PaymentMethodDirectory(gateways)
    pricing = PricingEngine(
        DjangoPricingConfigStore(),
        clock=clock,
        currency_resolver=CatalogCurrencyResolver(),
    )
    cart = CartService()
    lifecycle = OrderLifecycleService(
        clock=clock, event_registry=events, settings=settings,
    )
    orchestrator = PaymentOrchestrator(directory, clock=clock)
    checkout = CheckoutService(
        pricing,
        OrderAssembler(directory, clock=clock, event_registry=events),
        orchestrator,
        cart_service=cart,
        lifecycle=lifecycle,
    )
    reconciliation = ReconciliationHandler(gateways, directory, lifecycle, clock=clock)

    return HttpApiDependencies(
        cart_service=cart,
        pricing_engine=pricing,
        checkout_service=checkout,
        lifecycle=lifecycle,
        orchestrator=orchestrator,
        reconciliation=reconciliation,
        payment_methods=directory,
        clock=clock,
    )


def build_dependencies() -> HttpApiDependencies:
    """
    Lazy singleton wiring for adapter runtime.
    """
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        if _DEPENDENCIES is None:
            _DEPENDENCIES = _create_dependencies()
        return _DEPENDENCIES


def install_dependencies(dependencies: HttpApiDependencies | None) -> None:
    """Replace the wired services (tests); None rebuilds lazily."""
    global _DEPENDENCIES
    with _DEPENDENCIES_LOCK:
        _DEPENDENCIES = dependencies
