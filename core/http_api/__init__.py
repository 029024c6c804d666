"""
Storefront HTTP API — Public API
==================================
"""

from core.http_api.contracts import (
    AddressPayload,
    CallerMetadata,
    CartCheckoutHttpRequest,
    CartLineHttpRequest,
    CartLineUpdateHttpRequest,
    CheckoutHttpRequest,
    HttpApiErrorBody,
    HttpApiResponse,
    OrderActionHttpRequest,
    PaymentStartHttpRequest,
    QuoteHttpRequest,
    ReleaseAbandonedHttpRequest,
    WebhookHttpRequest,
)
from core.http_api.dependencies import HttpApiDependencies
from core.http_api.errors import (
    error_response,
    map_rejection_reason,
    rejection_response,
    status_for_error,
    storefront_error_response,
    success_response,
)

__all__ = [
    "AddressPayload",
    "CallerMetadata",
    "CartCheckoutHttpRequest",
    "CartLineHttpRequest",
    "CartLineUpdateHttpRequest",
    "CheckoutHttpRequest",
    "HttpApiErrorBody",
    "HttpApiResponse",
    "OrderActionHttpRequest",
    "PaymentStartHttpRequest",
    "QuoteHttpRequest",
    "ReleaseAbandonedHttpRequest",
    "WebhookHttpRequest",
    "HttpApiDependencies",
    "error_response",
    "map_rejection_reason",
    "rejection_response",
    "status_for_error",
    "storefront_error_response",
    "success_response",
]
