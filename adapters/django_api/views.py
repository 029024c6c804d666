"""
Storefront Django Adapter Views
=================================
Pass-through HTTP views over core/http_api handlers.

The caller is identified by the X-Tenant-Id and X-User-Id headers set
by the upstream gateway; authentication is not this service's concern.
"""

from __future__ import annotations

import json
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import build_dependencies
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
from core.http_api.errors import error_response
from core.http_api.handlers import (
    get_cart,
    get_order,
    get_payment_methods,
    post_cart_clear,
    post_cart_line,
    post_cart_line_remove,
    post_cart_line_update,
    post_checkout,
    post_checkout_cart,
    post_checkout_quote,
    post_order_cancel_approve,
    post_order_cancel_reject,
    post_order_cancel_request,
    post_order_cash_paid,
    post_order_refund,
    post_order_reject,
    post_payment_start,
    post_payment_webhook,
    post_release_abandoned,
)

TENANT_HEADER = "X-Tenant-Id"
USER_HEADER = "X-User-Id"


# ══════════════════════════════════════════════════════════════
# PARSING
# ══════════════════════════════════════════════════════════════

def _headers_from_request(request: HttpRequest) -> dict[str, str]:
    return {str(key): str(value) for key, value in request.headers.items()}


def _json_error(code: str, message: str, status: int = 400) -> JsonResponse:
    return JsonResponse(
        error_response(code=code, message=message, details={}),
        status=status,
    )


def _parse_uuid(value: Any, field_name: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be a valid UUID.") from exc


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _parse_caller(request: HttpRequest) -> CallerMetadata:
    tenant_raw = request.headers.get(TENANT_HEADER)
    if not tenant_raw:
        raise ValueError(f"{TENANT_HEADER} header is required.")
    user_id = (request.headers.get(USER_HEADER) or "").strip() or None
    return CallerMetadata(
        tenant_id=_parse_uuid(tenant_raw, TENANT_HEADER),
        user_id=user_id,
    )


def _parse_lines(value: Any) -> tuple[tuple[int, int], ...]:
    if value is None:
        return tuple()
    if not isinstance(value, list):
        raise ValueError("lines must be a list.")
    lines = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValueError("Each line must be an object with itemId and qty.")
        lines.append((entry["itemId"], entry["qty"]))
    return tuple(lines)


def _parse_address(value: Any) -> AddressPayload | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError("shippingAddress must be an object.")
    return AddressPayload(
        country_code=value.get("countryCode"),
        region_code=value.get("regionCode"),
        city=value.get("city") or "",
        postal_code=value.get("postalCode") or "",
        address_line=value.get("addressLine") or "",
        phone=value.get("phone") or "",
        shipping_method_id=value.get("shippingMethodId"),
    )


def _parse_amount(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError("amount must be a decimal number.") from exc


def _dispatch(handler, build_contract, request: HttpRequest) -> JsonResponse:
    try:
        contract = build_contract(request)
    except (ValueError, KeyError) as exc:
        message = str(exc) if isinstance(exc, ValueError) else f"{exc} is required."
        return _json_error("INVALID_REQUEST", message, status=400)

    status, payload = handler(contract, build_dependencies())
    return JsonResponse(payload, status=status)


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


# ══════════════════════════════════════════════════════════════
# CONTRACT FACTORIES
# ══════════════════════════════════════════════════════════════

def _cart_line_contract(request):
    body = _parse_json_body(request)
    return CartLineHttpRequest(
        caller=_parse_caller(request),
        item_id=body["itemId"],
        quantity=body["qty"],
    )


def _cart_line_update_factory(line_id: int, *, remove: bool):
    def _factory(request):
        body = {} if remove else _parse_json_body(request)
        return CartLineUpdateHttpRequest(
            caller=_parse_caller(request),
            line_id=line_id,
            quantity=0 if remove else body["qty"],
        )

    return _factory


def _quote_contract(request):
    body = _parse_json_body(request)
    return QuoteHttpRequest(
        caller=_parse_caller(request),
        currency_id=body["currencyId"],
        lines=_parse_lines(body.get("lines")),
        coupon_code=body.get("couponCode"),
        shipping_address=_parse_address(body.get("shippingAddress")),
    )


def _checkout_contract(request):
    body = _parse_json_body(request)
    return CheckoutHttpRequest(
        caller=_parse_caller(request),
        lines=_parse_lines(body["lines"]),
        currency_id=body["currencyId"],
        payment_method=body["paymentMethod"],
        coupon_code=body.get("couponCode"),
        shipping_address=_parse_address(body.get("shippingAddress")),
        strict_coupon=bool(body.get("strictCoupon", False)),
    )


def _cart_checkout_contract(request):
    body = _parse_json_body(request)
    return CartCheckoutHttpRequest(
        caller=_parse_caller(request),
        currency_id=body["currencyId"],
        payment_method=body["paymentMethod"],
        coupon_code=body.get("couponCode"),
        shipping_address=_parse_address(body.get("shippingAddress")),
        strict_coupon=bool(body.get("strictCoupon", False)),
    )


def _order_action_factory(order_id: uuid.UUID):
    def _factory(request):
        body = _parse_json_body(request) if request.method == "POST" else {}
        return OrderActionHttpRequest(
            caller=_parse_caller(request),
            order_id=order_id,
            reason=body.get("reason"),
        )

    return _factory


def _release_contract(request):
    return ReleaseAbandonedHttpRequest(tenant_id=_parse_caller(request).tenant_id)


def _payment_start_contract(request):
    body = _parse_json_body(request)
    tenant_raw = body.get("tenantId") or request.headers.get(TENANT_HEADER)
    if not tenant_raw:
        raise ValueError("tenantId is required.")
    return PaymentStartHttpRequest(
        tenant_id=_parse_uuid(tenant_raw, "tenantId"),
        order_id=_parse_uuid(body["orderId"], "orderId"),
        payment_method=body["paymentMethod"],
        amount=_parse_amount(body.get("amount")),
        currency=body.get("currency"),
    )


# ══════════════════════════════════════════════════════════════
# CART VIEWS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def cart_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _dispatch(get_cart, _parse_caller, request)


@csrf_exempt
def cart_lines_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(post_cart_line, _cart_line_contract, request)


@csrf_exempt
def cart_line_update_view(request: HttpRequest, line_id: int) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(
        post_cart_line_update,
        _cart_line_update_factory(line_id, remove=False),
        request,
    )


@csrf_exempt
def cart_line_remove_view(request: HttpRequest, line_id: int) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(
        post_cart_line_remove,
        _cart_line_update_factory(line_id, remove=True),
        request,
    )


@csrf_exempt
def cart_clear_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(post_cart_clear, _parse_caller, request)


# ══════════════════════════════════════════════════════════════
# CHECKOUT VIEWS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def checkout_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(post_checkout, _checkout_contract, request)


@csrf_exempt
def checkout_quote_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(post_checkout_quote, _quote_contract, request)


@csrf_exempt
def checkout_cart_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(post_checkout_cart, _cart_checkout_contract, request)


# ══════════════════════════════════════════════════════════════
# ORDER VIEWS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def order_detail_view(request: HttpRequest, order_id: uuid.UUID) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _dispatch(get_order, _order_action_factory(order_id), request)


def _order_action_view(handler):
    @csrf_exempt
    def _view(request: HttpRequest, order_id: uuid.UUID) -> JsonResponse:
        if request.method != "POST":
            return _method_not_allowed()
        return _dispatch(handler, _order_action_factory(order_id), request)

    return _view


order_cancel_request_view = _order_action_view(post_order_cancel_request)
order_cancel_approve_view = _order_action_view(post_order_cancel_approve)
order_cancel_reject_view = _order_action_view(post_order_cancel_reject)
order_refund_view = _order_action_view(post_order_refund)
order_reject_view = _order_action_view(post_order_reject)
order_cash_paid_view = _order_action_view(post_order_cash_paid)


@csrf_exempt
def orders_release_abandoned_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(post_release_abandoned, _release_contract, request)


# ══════════════════════════════════════════════════════════════
# PAYMENT VIEWS
# ══════════════════════════════════════════════════════════════

@csrf_exempt
def payment_start_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(post_payment_start, _payment_start_contract, request)


@csrf_exempt
def payment_methods_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return _dispatch(get_payment_methods, _parse_caller, request)


@csrf_exempt
def payment_webhook_view(request: HttpRequest, provider_code: str) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    return _dispatch(
        post_payment_webhook,
        lambda req: WebhookHttpRequest(
            provider_code=provider_code,
            raw_body=bytes(req.body),
            headers=_headers_from_request(req),
        ),
        request,
    )
