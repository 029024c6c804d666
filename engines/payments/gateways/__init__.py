"""
Storefront Payments — Gateways
================================
One adapter per provider behind the PaymentGateway contract.
"""

from __future__ import annotations

from typing import Optional

import httpx

from core.config import StorefrontSettings
from engines.payments.gateways.base import (
    AuthenticationError,
    CallbackNotice,
    CallbackOutcome,
    CreatePaymentCommand,
    GatewayRegistry,
    IntegrationError,
    PaymentGateway,
    PaymentStartResult,
    StartStatus,
    TransientError,
    sign_payload,
    verify_hmac_signature,
)
from engines.payments.gateways.cash import CashGateway
from engines.payments.gateways.paypal import PayPalGateway
from engines.payments.gateways.stripe_gateway import StripeGateway


def build_gateway_registry(
    settings: Optional[StorefrontSettings] = None,
    *,
    stripe_client=None,
    http_client: Optional[httpx.Client] = None,
) -> GatewayRegistry:
    """Registry with every supported provider."""
    settings = settings or StorefrontSettings()
    registry = GatewayRegistry()
    registry.register(CashGateway())
    if stripe_client is None:
        registry.register(StripeGateway(settings=settings))
    else:
        registry.register(StripeGateway(settings=settings, client=stripe_client))
    registry.register(PayPalGateway(settings=settings, client=http_client))
    return registry


__all__ = [
    "AuthenticationError",
    "CallbackNotice",
    "CallbackOutcome",
    "CashGateway",
    "CreatePaymentCommand",
    "GatewayRegistry",
    "IntegrationError",
    "PaymentGateway",
    "PaymentStartResult",
    "PayPalGateway",
    "StartStatus",
    "StripeGateway",
    "TransientError",
    "build_gateway_registry",
    "sign_payload",
    "verify_hmac_signature",
]
