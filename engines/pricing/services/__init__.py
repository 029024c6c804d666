"""
Storefront Pricing Engine — Application Service
=================================================
Composes the pricing primitives into one PricedQuote.

    itemsSubtotal = Σ current catalog price × quantity
    shipping      = selected method's cost (0 with a FREE_SHIPPING coupon)
    discount      = coupon discount, 0 when the coupon does not apply
    itemTax       = best tax rule on (itemsSubtotal − discount)
    shippingTax   = best shipping-flagged tax rule on shipping
    grandTotal    = itemsSubtotal − discount + shipping + itemTax + shippingTax

Quotes have no side effects: nothing is reserved and no coupon use is
consumed here.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from core.errors import (
    CouponInvalidError,
    CurrencyMismatchError,
    PricingInvariantError,
    ValidationError,
)
from core.policy.rejection import RejectionReason
from core.time.clock import Clock, SystemClock
from engines.pricing.config_store import PricingConfigStore
from engines.pricing.rules import (
    ZERO,
    Destination,
    ShippingQuote,
    coupon_discount,
    coupon_rejection,
    pick_tax_rate,
    quote_shipping,
    to_money,
)

logger = logging.getLogger("storefront.pricing")


# ══════════════════════════════════════════════════════════════
# INPUT CONTRACTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineRequest:
    """One requested (item, quantity) pair from a cart or a checkout body."""

    item_id: int
    quantity: int

    def __post_init__(self):
        if isinstance(self.item_id, bool) or not isinstance(self.item_id, int):
            raise ValidationError("itemId must be an integer.")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValidationError("qty must be an integer.")
        if self.quantity <= 0:
            raise ValidationError(
                f"qty for item {self.item_id} must be greater than zero.",
                details={"item_id": self.item_id, "quantity": self.quantity},
            )


@dataclass(frozen=True)
class ShippingAddress:
    country_code: Optional[str] = None
    region_code: Optional[str] = None
    city: str = ""
    postal_code: str = ""
    address_line: str = ""
    phone: str = ""
    shipping_method_id: Optional[int] = None

    @property
    def destination(self) -> Destination:
        return Destination(
            country_code=self.country_code,
            region_code=self.region_code,
        )

    def to_dict(self) -> dict:
        return {
            "country_code": self.destination.country_code,
            "region_code": self.destination.region_code,
            "city": self.city,
            "postal_code": self.postal_code,
            "address_line": self.address_line,
            "phone": self.phone,
            "shipping_method_id": self.shipping_method_id,
        }


@dataclass(frozen=True)
class PricingLine:
    item_id: int
    name: str
    quantity: int
    unit_price: Decimal
    weight_kg: Optional[Decimal] = None
    image_url: Optional[str] = None

    @property
    def line_subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    @property
    def line_weight_kg(self) -> Decimal:
        if self.weight_kg is None:
            return Decimal("0")
        return self.weight_kg * self.quantity

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "image_url": self.image_url,
            "quantity": self.quantity,
            "unit_price": str(to_money(self.unit_price)),
            "line_subtotal": str(self.line_subtotal),
        }


# ══════════════════════════════════════════════════════════════
# PRICED QUOTE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricedQuote:
    tenant_id: uuid.UUID
    currency_code: str
    lines: tuple[PricingLine, ...]
    items_subtotal: Decimal
    shipping: ShippingQuote
    item_tax: Decimal
    shipping_tax: Decimal
    coupon_discount: Decimal
    grand_total: Decimal
    currency_symbol: str = ""
    coupon_code: Optional[str] = None
    coupon_rejection: Optional[RejectionReason] = None
    shipping_address: Optional[ShippingAddress] = None

    @property
    def shipping_total(self) -> Decimal:
        return self.shipping.cost

    def to_dict(self) -> dict[str, Any]:
        return {
            "currency_code": self.currency_code,
            "currency_symbol": self.currency_symbol,
            "lines": [line.to_dict() for line in self.lines],
            "items_subtotal": str(self.items_subtotal),
            "shipping_total": str(self.shipping_total),
            "shipping_method": self.shipping.to_dict(),
            "item_tax": str(self.item_tax),
            "shipping_tax": str(self.shipping_tax),
            "coupon_code": self.coupon_code,
            "coupon_discount": str(self.coupon_discount),
            "coupon_rejection": (
                None
                if self.coupon_rejection is None
                else self.coupon_rejection.to_dict()
            ),
            "grand_total": str(self.grand_total),
        }


def assert_quote_consistent(quote: PricedQuote) -> None:
    """Arithmetic invariants every quote must satisfy."""
    expected = (
        quote.items_subtotal
        - quote.coupon_discount
        + quote.shipping_total
        + quote.item_tax
        + quote.shipping_tax
    )
    if quote.grand_total != expected:
        raise PricingInvariantError(
            f"grand total {quote.grand_total} != components {expected}."
        )
    if quote.coupon_discount < 0 or quote.coupon_discount > quote.items_subtotal:
        raise PricingInvariantError(
            f"discount {quote.coupon_discount} outside 0..{quote.items_subtotal}."
        )
    if quote.item_tax < 0 or quote.shipping_tax < 0 or quote.shipping_total < 0:
        raise PricingInvariantError("tax and shipping must not be negative.")
    if quote.grand_total < 0:
        raise PricingInvariantError(f"grand total {quote.grand_total} is negative.")


def merge_line_requests(lines: Iterable[LineRequest]) -> list[LineRequest]:
    """Sum quantities of repeated items, keeping first-seen order."""
    merged: dict[int, int] = {}
    for line in lines:
        merged[line.item_id] = merged.get(line.item_id, 0) + line.quantity
    return [LineRequest(item_id=k, quantity=v) for k, v in merged.items()]


# ══════════════════════════════════════════════════════════════
# PRICING ENGINE
# ══════════════════════════════════════════════════════════════

class PricingEngine:
    """
    price() loads current catalog prices and prices them.
    price_lines() prices already-resolved lines; it is what tests and
    the order assembler use once items are in hand.
    """

    def __init__(
        self,
        config_store: PricingConfigStore,
        *,
        clock: Optional[Clock] = None,
        currency_resolver=None,
    ):
        self._config = config_store
        self._clock = clock or SystemClock()
        self._currency_resolver = currency_resolver

    # ── Catalog-backed entry point ────────────────────────────

    def price(
        self,
        tenant_id: uuid.UUID,
        currency_id: int,
        lines: Sequence[LineRequest],
        shipping_address: Optional[ShippingAddress] = None,
        coupon_code: Optional[str] = None,
        *,
        strict_coupon: bool = False,
    ) -> PricedQuote:
        currency = self._resolve_currency(tenant_id, currency_id)
        pricing_lines = self.load_pricing_lines(tenant_id, lines, currency.code)
        return self.price_lines(
            tenant_id,
            currency.code,
            pricing_lines,
            shipping_address,
            coupon_code,
            strict_coupon=strict_coupon,
            currency_symbol=currency.symbol,
        )

    def _resolve_currency(self, tenant_id, currency_id):
        if self._currency_resolver is None:
            from engines.catalog.currency import CatalogCurrencyResolver

            self._currency_resolver = CatalogCurrencyResolver()
        return self._currency_resolver.resolve(tenant_id, currency_id)

    def load_pricing_lines(
        self,
        tenant_id: uuid.UUID,
        lines: Sequence[LineRequest],
        currency_code: str,
    ) -> list[PricingLine]:
        """
        Current catalog price for every requested item.

        Raises:
            ValidationError:       empty request, unknown/inactive/foreign item
            CurrencyMismatchError: item priced in another currency
        """
        from engines.catalog.models import CatalogItem
        from engines.catalog.variants import describe_item

        merged = merge_line_requests(lines)
        if not merged:
            raise ValidationError("Cart is empty.")

        items = {
            item.pk: item
            for item in CatalogItem.objects.select_related("currency").filter(
                pk__in=[line.item_id for line in merged]
            )
        }

        result: list[PricingLine] = []
        for line in merged:
            item = items.get(line.item_id)
            if item is None or item.tenant_id != tenant_id or not item.active:
                raise ValidationError(
                    f"Item {line.item_id} is not available in this store.",
                    details={"item_id": line.item_id},
                )
            if item.currency.code != currency_code:
                raise CurrencyMismatchError(
                    currency_code, item.currency.code, item_id=item.pk,
                )
            entry = describe_item(item)
            result.append(
                PricingLine(
                    item_id=item.pk,
                    name=entry.display_name(),
                    quantity=line.quantity,
                    unit_price=to_money(item.price),
                    weight_kg=item.weight_kg,
                    image_url=entry.image_url(),
                )
            )
        return result

    # ── Pure composition ──────────────────────────────────────

    def price_lines(
        self,
        tenant_id: uuid.UUID,
        currency_code: str,
        lines: Sequence[PricingLine],
        shipping_address: Optional[ShippingAddress] = None,
        coupon_code: Optional[str] = None,
        *,
        strict_coupon: bool = False,
        currency_symbol: str = "",
    ) -> PricedQuote:
        if not lines:
            raise ValidationError("Cart is empty.")

        items_subtotal = to_money(sum((line.line_subtotal for line in lines), ZERO))
        total_weight = sum((line.line_weight_kg for line in lines), Decimal("0"))
        destination = (
            shipping_address.destination
            if shipping_address is not None
            else Destination()
        )

        shipping = ShippingQuote(method_id=None, method_name=None, cost=ZERO)
        if shipping_address is not None:
            shipping = quote_shipping(
                self._config.shipping_rates(tenant_id),
                destination,
                items_subtotal,
                total_weight,
                shipping_address.shipping_method_id,
            )
            if (
                shipping_address.shipping_method_id is not None
                and shipping.method_id is None
            ):
                raise ValidationError(
                    f"Shipping method {shipping_address.shipping_method_id} "
                    f"is not available for this destination.",
                    details={"shipping_method_id": shipping_address.shipping_method_id},
                )

        discount = ZERO
        applied_code = None
        rejection = None
        code = (coupon_code or "").strip()
        if code:
            coupon = self._config.find_coupon(tenant_id, code)
            rejection = coupon_rejection(
                coupon, code, items_subtotal, self._clock.now_utc(),
            )
            if rejection is not None:
                if strict_coupon:
                    raise CouponInvalidError(code, rejection.code, rejection.message)
                logger.info(
                    f"Coupon ignored: {code} (tenant: {tenant_id}): {rejection.code}"
                )
            else:
                applied_code = coupon.code
                discount = coupon_discount(coupon, items_subtotal)
                if coupon.is_free_shipping:
                    shipping = ShippingQuote(
                        method_id=shipping.method_id,
                        method_name=shipping.method_name,
                        cost=ZERO,
                    )

        tax_rates = self._config.tax_rates(tenant_id)
        item_rule = pick_tax_rate(tax_rates, destination)
        item_tax = (
            item_rule.compute_tax(items_subtotal - discount)
            if item_rule is not None
            else ZERO
        )
        shipping_rule = pick_tax_rate(tax_rates, destination, for_shipping=True)
        shipping_tax = (
            shipping_rule.compute_tax(shipping.cost)
            if shipping_rule is not None
            else ZERO
        )

        grand_total = to_money(
            items_subtotal - discount + shipping.cost + item_tax + shipping_tax
        )

        quote = PricedQuote(
            tenant_id=tenant_id,
            currency_code=currency_code,
            currency_symbol=currency_symbol,
            lines=tuple(lines),
            items_subtotal=items_subtotal,
            shipping=shipping,
            item_tax=item_tax,
            shipping_tax=shipping_tax,
            coupon_discount=discount,
            grand_total=grand_total,
            coupon_code=applied_code,
            coupon_rejection=rejection,
            shipping_address=shipping_address,
        )
        assert_quote_consistent(quote)
        return quote

    # ── Shipping method listing ───────────────────────────────

    def available_shipping_methods(
        self,
        tenant_id: uuid.UUID,
        shipping_address: ShippingAddress,
        lines: Sequence[PricingLine],
    ) -> list[ShippingQuote]:
        items_subtotal = to_money(sum((line.line_subtotal for line in lines), ZERO))
        total_weight = sum((line.line_weight_kg for line in lines), Decimal("0"))
        destination = shipping_address.destination
        quotes = []
        for rate in self._config.shipping_rates(tenant_id):
            if not rate.serves(destination):
                continue
            quotes.append(
                quote_shipping(
                    [rate], destination, items_subtotal, total_weight,
                )
            )
        return quotes
