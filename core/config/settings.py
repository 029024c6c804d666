"""
Storefront Core Config — Engine Settings
==========================================
Typed view over the STOREFRONT settings dict.

Engines receive a StorefrontSettings instance instead of reading
django.conf.settings directly, so tests can build one by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class StorefrontSettings:
    """
    reservation_timeout_minutes: PENDING orders without a PAID transaction
        older than this are released. None or 0 disables the sweep.
    stripe_platform_fee_pct: platform share taken on connected-account
        payments, in percent (10 = 10%).
    paypal_api_base: API root per mode ('SANDBOX', 'LIVE').
    """

    reservation_timeout_minutes: Optional[int] = 30
    stripe_platform_fee_pct: Decimal = Decimal("10")
    paypal_api_base: Mapping[str, str] = field(
        default_factory=lambda: {
            "SANDBOX": "https://api-m.sandbox.paypal.com",
            "LIVE": "https://api-m.paypal.com",
        }
    )
    payment_return_url: str = ""
    payment_cancel_url: str = ""
    http_timeout_seconds: float = 15.0

    def __post_init__(self):
        if self.reservation_timeout_minutes is not None:
            if (
                not isinstance(self.reservation_timeout_minutes, int)
                or self.reservation_timeout_minutes < 0
            ):
                raise ValueError(
                    "reservation_timeout_minutes must be a non-negative int or None."
                )
        if not isinstance(self.stripe_platform_fee_pct, Decimal):
            raise ValueError("stripe_platform_fee_pct must be Decimal.")
        if not (Decimal("0") <= self.stripe_platform_fee_pct <= Decimal("100")):
            raise ValueError("stripe_platform_fee_pct must be within 0..100.")
        if self.http_timeout_seconds <= 0:
            raise ValueError("http_timeout_seconds must be positive.")

    @property
    def reservation_sweep_enabled(self) -> bool:
        return bool(self.reservation_timeout_minutes)


def _decimal(value: Any, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name} must be a decimal number.") from exc


def settings_from_mapping(raw: Mapping[str, Any]) -> StorefrontSettings:
    timeout = raw.get("RESERVATION_TIMEOUT_MINUTES", 30)
    return StorefrontSettings(
        reservation_timeout_minutes=None if timeout is None else int(timeout),
        stripe_platform_fee_pct=_decimal(
            raw.get("STRIPE_PLATFORM_FEE_PCT", "10"), "STRIPE_PLATFORM_FEE_PCT"
        ),
        paypal_api_base=dict(
            raw.get("PAYPAL_API_BASE")
            or StorefrontSettings().paypal_api_base
        ),
        payment_return_url=str(raw.get("PAYMENT_RETURN_URL") or ""),
        payment_cancel_url=str(raw.get("PAYMENT_CANCEL_URL") or ""),
        http_timeout_seconds=float(raw.get("HTTP_TIMEOUT_SECONDS", 15)),
    )


def load_storefront_settings() -> StorefrontSettings:
    """Read the STOREFRONT dict from Django settings."""
    from django.conf import settings

    return settings_from_mapping(getattr(settings, "STOREFRONT", {}) or {})
