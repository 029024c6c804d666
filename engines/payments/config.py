"""
Storefront Payments — Typed Gateway Configuration
===================================================
PaymentMethodConfig.config_json is parsed into one frozen dataclass per
provider, chosen by provider code. Unknown keys are ignored; missing
required keys raise GatewayConfigError.

Secrets are excluded from repr() so configs can be logged safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional, Union

from core.errors import GatewayConfigError

STRIPE = "STRIPE"
CASH = "CASH"
PAYPAL = "PAYPAL"

PAYPAL_MODES = frozenset({"SANDBOX", "LIVE"})


@dataclass(frozen=True)
class StripeConfig:
    """
    Card processor with connected accounts.

    connected_account_id: tenant's sub-account; payments are created on
        the platform and transferred there minus the platform fee.
    platform_fee_pct: overrides STOREFRONT['STRIPE_PLATFORM_FEE_PCT'].
    """

    secret_key: str = field(repr=False)
    publishable_key: str = ""
    webhook_secret: str = field(default="", repr=False)
    connected_account_id: str = ""
    platform_fee_pct: Optional[Decimal] = None

    def __post_init__(self):
        if not self.secret_key:
            raise GatewayConfigError(
                "Stripe secret_key is required.",
                details={"provider_code": STRIPE, "field": "secret_key"},
            )
        if self.platform_fee_pct is not None and not (
            Decimal("0") <= self.platform_fee_pct <= Decimal("100")
        ):
            raise GatewayConfigError(
                "Stripe platform_fee_pct must be within 0..100.",
                details={"provider_code": STRIPE, "field": "platform_fee_pct"},
            )


@dataclass(frozen=True)
class CashConfig:
    """Offline payment. callback_secret signs owner/POS confirmations."""

    callback_secret: str = field(default="", repr=False)
    instructions: str = ""


@dataclass(frozen=True)
class PayPalConfig:
    client_id: str
    client_secret: str = field(repr=False)
    mode: str = "SANDBOX"
    webhook_id: str = ""
    brand_name: str = ""

    def __post_init__(self):
        if not self.client_id or not self.client_secret:
            raise GatewayConfigError(
                "PayPal client_id and client_secret are required.",
                details={"provider_code": PAYPAL},
            )
        if self.mode not in PAYPAL_MODES:
            raise GatewayConfigError(
                f"PayPal mode must be one of {sorted(PAYPAL_MODES)}.",
                details={"provider_code": PAYPAL, "field": "mode"},
            )


GatewayConfig = Union[StripeConfig, CashConfig, PayPalConfig]


# ══════════════════════════════════════════════════════════════
# PARSERS
# ══════════════════════════════════════════════════════════════

def _text(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise GatewayConfigError(
            f"Gateway setting '{key}' must be a string.",
            details={"field": key},
        )
    return value.strip()


def _parse_stripe(raw: Mapping[str, Any]) -> StripeConfig:
    fee = raw.get("platform_fee_pct")
    if fee is not None:
        try:
            fee = Decimal(str(fee))
        except (InvalidOperation, ValueError):
            raise GatewayConfigError(
                "Stripe platform_fee_pct must be a number.",
                details={"provider_code": STRIPE, "field": "platform_fee_pct"},
            ) from None
    return StripeConfig(
        secret_key=_text(raw, "secret_key"),
        publishable_key=_text(raw, "publishable_key"),
        webhook_secret=_text(raw, "webhook_secret"),
        connected_account_id=_text(raw, "connected_account_id"),
        platform_fee_pct=fee,
    )


def _parse_cash(raw: Mapping[str, Any]) -> CashConfig:
    return CashConfig(
        callback_secret=_text(raw, "callback_secret"),
        instructions=_text(raw, "instructions"),
    )


def _parse_paypal(raw: Mapping[str, Any]) -> PayPalConfig:
    return PayPalConfig(
        client_id=_text(raw, "client_id"),
        client_secret=_text(raw, "client_secret"),
        mode=(_text(raw, "mode") or "SANDBOX").upper(),
        webhook_id=_text(raw, "webhook_id"),
        brand_name=_text(raw, "brand_name"),
    )


_PARSERS: dict[str, Callable[[Mapping[str, Any]], GatewayConfig]] = {
    STRIPE: _parse_stripe,
    CASH: _parse_cash,
    PAYPAL: _parse_paypal,
}


def parse_gateway_config(provider_code: str, raw: Optional[Mapping[str, Any]]) -> GatewayConfig:
    """
    Raises:
        GatewayConfigError: unknown provider code, non-object config,
                            or a required setting missing.
    """
    code = (provider_code or "").strip().upper()
    parser = _PARSERS.get(code)
    if parser is None:
        raise GatewayConfigError(
            f"No configuration schema for provider '{provider_code}'.",
            details={"provider_code": provider_code},
        )
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise GatewayConfigError(
            "Gateway configuration must be a JSON object.",
            details={"provider_code": code},
        )
    return parser(raw)
