"""
Storefront HTTP API — Error Mapping
=====================================
Stable transport error mapping for engine errors and policy rejections.
"""

from __future__ import annotations

from typing import Any, Optional

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
    StorefrontError,
    ValidationError,
)
from core.http_api.contracts import HttpApiErrorBody, HttpApiResponse
from core.policy.rejection import RejectionReason

# Most specific first; the first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type, int], ...] = (
    (InsufficientStockError, 409),
    (CurrencyMismatchError, 400),
    (CouponInvalidError, 400),
    (ValidationError, 400),
    (MalformedCallbackError, 400),
    (PaymentDeclinedError, 402),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (GatewayConfigError, 503),
)


def status_for_error(error: StorefrontError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


def error_response(
    *,
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return HttpApiResponse(
        ok=False,
        error=HttpApiErrorBody(
            code=code,
            message=message,
            details=details or {},
        ),
    ).to_dict()


def success_response(
    data: Any,
    *,
    meta: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return HttpApiResponse(ok=True, data=data, meta=meta).to_dict()


def map_rejection_reason(reason: RejectionReason) -> HttpApiErrorBody:
    return HttpApiErrorBody(
        code=reason.code,
        message=reason.message,
        details={
            "policy_name": reason.policy_name,
            "message_key": f"rejection.{reason.code.lower()}",
        },
    )


def rejection_response(
    reason: RejectionReason,
    *,
    extra_details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    mapped = map_rejection_reason(reason)
    details = dict(mapped.details)
    if extra_details:
        details.update(extra_details)
    return error_response(
        code=mapped.code,
        message=mapped.message,
        details=details,
    )


def storefront_error_response(error: StorefrontError) -> tuple[int, dict[str, Any]]:
    """(status, payload) for an engine error."""
    return status_for_error(error), error_response(
        code=error.code,
        message=error.message,
        details=error.details,
    )
