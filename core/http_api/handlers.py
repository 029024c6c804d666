"""
Storefront HTTP API — Framework-Agnostic Handlers
===================================================
Pure handler functions over contracts and injected dependencies.

Every handler returns (status, payload). Payload keys are camelCase on
the wire; engine errors are mapped by core.http_api.errors.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from core.errors import MalformedCallbackError, StorefrontError, ValidationError
from core.http_api.contracts import (
    AddressPayload,
    CallerMetadata,
    CartCheckoutHttpRequest,
    CartLineHttpRequest,
    CartLineUpdateHttpRequest,
    CheckoutHttpRequest,
    OrderActionHttpRequest,
    PaymentStartHttpRequest,
    QuoteHttpRequest,
    ReleaseAbandonedHttpRequest,
    WebhookHttpRequest,
)
from core.http_api.errors import (
    rejection_response,
    storefront_error_response,
    success_response,
)
from engines.orders.models import OrderLine
from engines.orders.policies import order_owner_policy
from engines.orders.services import CheckoutRequest
from engines.payments.services.summary import payment_summary
from engines.pricing.services import LineRequest, ShippingAddress

logger = logging.getLogger("storefront.http")

HandlerResult = tuple[int, dict[str, Any]]


# ══════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════

def _camel_key(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camelize(value: Any) -> Any:
    """Recursively rewrite snake_case dict keys as camelCase."""
    if isinstance(value, dict):
        return {
            (_camel_key(key) if isinstance(key, str) else key): camelize(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [camelize(item) for item in value]
    return value


def _guarded(action: Callable[[], Any]) -> HandlerResult:
    try:
        data = action()
    except StorefrontError as exc:
        status, payload = storefront_error_response(exc)
        logger.info(f"Request refused ({status}): {exc.code} {exc.message}")
        return status, camelize(payload)
    return 200, success_response(camelize(data))


def _buyer(caller: CallerMetadata) -> str:
    if caller.user_id is None:
        raise ValidationError("X-User-Id header is required.")
    return caller.user_id


def _address(payload: Optional[AddressPayload]) -> Optional[ShippingAddress]:
    if payload is None:
        return None
    return ShippingAddress(
        country_code=payload.country_code,
        region_code=payload.region_code,
        city=payload.city,
        postal_code=payload.postal_code,
        address_line=payload.address_line,
        phone=payload.phone,
        shipping_method_id=payload.shipping_method_id,
    )


def _line_requests(lines) -> tuple[LineRequest, ...]:
    return tuple(LineRequest(item_id=item_id, quantity=qty) for item_id, qty in lines)


def _iso(value) -> Optional[str]:
    return None if value is None else value.isoformat()


def serialize_order(order) -> dict[str, Any]:
    lines = OrderLine.objects.filter(order=order).order_by("item_id")
    return {
        "order_id": str(order.id),
        "order_code": order.code,
        "user_id": order.user_id,
        "tenant_id": str(order.tenant_id),
        "status": order.status,
        "currency_code": order.currency.code,
        "items_subtotal": str(order.items_subtotal),
        "shipping_total": str(order.shipping_total),
        "item_tax_total": str(order.item_tax_total),
        "shipping_tax_total": str(order.shipping_tax_total),
        "coupon_code": order.coupon_code,
        "coupon_discount": str(order.coupon_discount),
        "grand_total": str(order.total_amount),
        "payment_method": order.payment_method,
        "shipping_method_name": order.shipping_method_name,
        "shipping_address": order.shipping_address,
        "created_at": _iso(order.created_at),
        "cancel_requested_at": _iso(order.cancel_requested_at),
        "completed_at": _iso(order.completed_at),
        "canceled_at": _iso(order.canceled_at),
        "rejected_at": _iso(order.rejected_at),
        "refunded_at": _iso(order.refunded_at),
        "lines": [
            {
                "item_id": line.item_id,
                "name": line.item_name,
                "image_url": line.image_url,
                "quantity": line.quantity,
                "unit_price_at_purchase": str(line.unit_price_at_purchase),
                "line_subtotal": str(line.line_subtotal),
            }
            for line in lines
        ],
        "payment": payment_summary(order).to_dict(),
    }


# ══════════════════════════════════════════════════════════════
# CART
# ══════════════════════════════════════════════════════════════

def get_cart(caller: CallerMetadata, dependencies) -> HandlerResult:
    return _guarded(
        lambda: dependencies.cart_service.get_my_cart(_buyer(caller)).to_dict()
    )


def post_cart_line(request: CartLineHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: dependencies.cart_service.add_line(
            request.caller.user_id, request.item_id, request.quantity,
        ).to_dict()
    )


def post_cart_line_update(request: CartLineUpdateHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: dependencies.cart_service.set_line_quantity(
            request.caller.user_id, request.line_id, request.quantity,
        ).to_dict()
    )


def post_cart_line_remove(request: CartLineUpdateHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: dependencies.cart_service.remove_line(
            request.caller.user_id, request.line_id,
        ).to_dict()
    )


def post_cart_clear(caller: CallerMetadata, dependencies) -> HandlerResult:
    return _guarded(
        lambda: dependencies.cart_service.clear(_buyer(caller)).to_dict()
    )


# ══════════════════════════════════════════════════════════════
# CHECKOUT
# ══════════════════════════════════════════════════════════════

def post_checkout_quote(request: QuoteHttpRequest, dependencies) -> HandlerResult:
    def _quote():
        tenant_id = request.caller.tenant_id
        address = _address(request.shipping_address)
        if request.lines:
            quote = dependencies.checkout_service.quote(
                tenant_id,
                request.currency_id,
                _line_requests(request.lines),
                address,
                request.coupon_code,
            )
        else:
            quote = dependencies.checkout_service.quote_from_cart(
                tenant_id,
                _buyer(request.caller),
                request.currency_id,
                address,
                request.coupon_code,
            )
        data = quote.to_dict()
        if address is not None:
            data["shipping_methods"] = [
                option.to_dict()
                for option in dependencies.pricing_engine.available_shipping_methods(
                    tenant_id, address, quote.lines,
                )
            ]
        return data

    return _guarded(_quote)


def post_checkout(request: CheckoutHttpRequest, dependencies) -> HandlerResult:
    def _checkout():
        result = dependencies.checkout_service.checkout(
            CheckoutRequest(
                tenant_id=request.caller.tenant_id,
                user_id=request.caller.user_id,
                lines=_line_requests(request.lines),
                currency_id=request.currency_id,
                payment_method=request.payment_method,
                coupon_code=request.coupon_code,
                shipping_address=_address(request.shipping_address),
                strict_coupon=request.strict_coupon,
            )
        )
        return result.to_dict()

    return _guarded(_checkout)


def post_checkout_cart(request: CartCheckoutHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: dependencies.checkout_service.checkout_cart(
            request.caller.tenant_id,
            request.caller.user_id,
            request.currency_id,
            request.payment_method,
            coupon_code=request.coupon_code,
            shipping_address=_address(request.shipping_address),
            strict_coupon=request.strict_coupon,
        ).to_dict()
    )


# ══════════════════════════════════════════════════════════════
# ORDERS
# ══════════════════════════════════════════════════════════════

def get_order(request: OrderActionHttpRequest, dependencies) -> HandlerResult:
    try:
        order = dependencies.lifecycle.get_order(
            request.order_id, tenant_id=request.caller.tenant_id,
        )
    except StorefrontError as exc:
        status, payload = storefront_error_response(exc)
        return status, camelize(payload)

    if request.caller.user_id is not None:
        rejection = order_owner_policy(order, request.caller.user_id)
        if rejection is not None:
            return 403, camelize(
                rejection_response(
                    rejection, extra_details={"order_id": str(request.order_id)},
                )
            )
    return 200, success_response(camelize(serialize_order(order)))


def post_order_cancel_request(request: OrderActionHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: serialize_order(
            dependencies.lifecycle.request_cancel(
                request.order_id,
                _buyer(request.caller),
                tenant_id=request.caller.tenant_id,
            )
        )
    )


def post_order_cancel_approve(request: OrderActionHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: serialize_order(
            dependencies.lifecycle.approve_cancel(request.order_id, request.caller.tenant_id)
        )
    )


def post_order_cancel_reject(request: OrderActionHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: serialize_order(
            dependencies.lifecycle.reject_cancel(request.order_id, request.caller.tenant_id)
        )
    )


def post_order_refund(request: OrderActionHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: serialize_order(
            dependencies.lifecycle.mark_refunded(request.order_id, request.caller.tenant_id)
        )
    )


def post_order_reject(request: OrderActionHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: serialize_order(
            dependencies.lifecycle.owner_reject(
                request.order_id,
                request.caller.tenant_id,
                reason=request.reason,
            )
        )
    )


def post_order_cash_paid(request: OrderActionHttpRequest, dependencies) -> HandlerResult:
    def _confirm():
        tenant_id = request.caller.tenant_id
        dependencies.lifecycle.get_order(request.order_id, tenant_id=tenant_id)
        result = dependencies.reconciliation.mark_cash_paid(request.order_id, tenant_id)
        order = dependencies.lifecycle.get_order(request.order_id, tenant_id=tenant_id)
        return {"reconciliation": result.to_dict(), "order": serialize_order(order)}

    return _guarded(_confirm)


def post_release_abandoned(request: ReleaseAbandonedHttpRequest, dependencies) -> HandlerResult:
    def _release():
        released = dependencies.lifecycle.release_abandoned_orders(
            tenant_id=request.tenant_id,
        )
        return {
            "released_order_ids": [str(order_id) for order_id in released],
            "count": len(released),
        }

    return _guarded(_release)


# ══════════════════════════════════════════════════════════════
# PAYMENTS
# ══════════════════════════════════════════════════════════════

def post_payment_start(request: PaymentStartHttpRequest, dependencies) -> HandlerResult:
    return _guarded(
        lambda: dependencies.orchestrator.start_payment(
            request.tenant_id,
            request.order_id,
            request.payment_method,
            amount=request.amount,
            currency=request.currency,
        ).to_dict()
    )


def get_payment_methods(caller: CallerMetadata, dependencies) -> HandlerResult:
    return _guarded(
        lambda: {"methods": dependencies.payment_methods.list_enabled(caller.tenant_id)}
    )


def post_payment_webhook(request: WebhookHttpRequest, dependencies) -> HandlerResult:
    """
    200 for everything the provider should not retry, including unknown
    references and unexpected failures. Only an unparseable body is 400.
    """
    try:
        result = dependencies.reconciliation.reconcile(
            request.provider_code, request.raw_body, request.headers,
        )
    except MalformedCallbackError as exc:
        logger.warning(f"Malformed {request.provider_code} callback: {exc.message}")
        status, payload = storefront_error_response(exc)
        return status, camelize(payload)
    except Exception:
        logger.error(
            f"Reconciliation failed for {request.provider_code} callback",
            exc_info=True,
        )
        return 200, success_response({"outcome": "ERROR"})
    return 200, success_response(camelize(result.to_dict()))
