"""
Storefront Cart — Application Service
=======================================
getOrCreateActiveCart → addLine / setLineQuantity / removeLine → clear.

Every mutation runs in one transaction with the cart row locked,
then recomputes total_amount = Σ(unit_price × quantity) from the lines.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction

from core.errors import (
    CurrencyMismatchError,
    NotFoundError,
    ValidationError,
)
from engines.cart.models import Cart, CartLine, CartStatus
from engines.catalog.models import CatalogItem
from engines.catalog.variants import describe_item
from engines.pricing.rules import ZERO, to_money
from engines.pricing.services import LineRequest

logger = logging.getLogger("storefront.cart")


# ══════════════════════════════════════════════════════════════
# READ MODELS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CartLineView:
    line_id: int
    item_id: int
    name: str
    image_url: Optional[str]
    quantity: int
    unit_price: Decimal

    @property
    def line_subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "item_id": self.item_id,
            "name": self.name,
            "image_url": self.image_url,
            "quantity": self.quantity,
            "unit_price": str(to_money(self.unit_price)),
            "line_subtotal": str(self.line_subtotal),
        }


@dataclass(frozen=True)
class CartView:
    cart_id: uuid.UUID
    user_id: str
    status: str
    tenant_id: Optional[uuid.UUID]
    currency_code: Optional[str]
    total_amount: Decimal
    lines: tuple[CartLineView, ...]

    def to_dict(self) -> dict:
        return {
            "cart_id": str(self.cart_id),
            "status": self.status,
            "tenant_id": None if self.tenant_id is None else str(self.tenant_id),
            "currency_code": self.currency_code,
            "total_amount": str(to_money(self.total_amount)),
            "lines": [line.to_dict() for line in self.lines],
        }

    def line_requests(self) -> list[LineRequest]:
        return [
            LineRequest(item_id=line.item_id, quantity=line.quantity)
            for line in self.lines
        ]


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════

class CartService:

    def get_or_create_active_cart(self, user_id: str) -> Cart:
        user_id = _require_user(user_id)
        cart = Cart.objects.filter(user_id=user_id, status=CartStatus.ACTIVE).first()
        if cart is not None:
            return cart
        try:
            with transaction.atomic():
                cart = Cart.objects.create(user_id=user_id)
        except IntegrityError:
            # A concurrent request created it first.
            cart = Cart.objects.get(user_id=user_id, status=CartStatus.ACTIVE)
        logger.debug(f"Active cart {cart.id} for user {user_id}")
        return cart

    def get_my_cart(self, user_id: str) -> CartView:
        return self._view(self.get_or_create_active_cart(user_id))

    def add_line(self, user_id: str, item_id: int, quantity: int) -> CartView:
        """
        Raises:
            ValidationError:       qty ≤ 0, unknown/inactive item,
                                   item from another store
            CurrencyMismatchError: item priced in another currency
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                "qty must be greater than zero.",
                details={"item_id": item_id, "quantity": quantity},
            )
        self.get_or_create_active_cart(user_id)

        with transaction.atomic():
            cart = self._locked_active_cart(user_id)
            item = (
                CatalogItem.objects.select_related("currency")
                .filter(pk=item_id, active=True)
                .first()
            )
            if item is None:
                raise ValidationError(
                    f"Item {item_id} is not available.",
                    details={"item_id": item_id},
                )
            if cart.tenant_id is not None and cart.tenant_id != item.tenant_id:
                raise ValidationError(
                    "Cart already holds items from another store.",
                    details={"item_id": item_id},
                )
            if cart.currency_id is None:
                cart.currency = item.currency
                cart.tenant_id = item.tenant_id
            elif cart.currency_id != item.currency_id:
                raise CurrencyMismatchError(
                    cart.currency.code, item.currency.code, item_id=item.pk,
                )

            line = CartLine.objects.filter(cart=cart, item=item).first()
            if line is not None:
                line.quantity += quantity
                line.save(update_fields=["quantity"])
            else:
                CartLine.objects.create(
                    cart=cart,
                    item=item,
                    quantity=quantity,
                    unit_price=to_money(item.price),
                )
            self._recalculate(cart)

        logger.info(f"Cart {cart.id}: added {quantity} × item {item_id}")
        return self._view(cart)

    def set_line_quantity(self, user_id: str, line_id: int, quantity: int) -> CartView:
        """qty ≤ 0 removes the line."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("qty must be an integer.")
        with transaction.atomic():
            cart = self._locked_active_cart(user_id)
            line = CartLine.objects.filter(pk=line_id, cart=cart).first()
            if line is None:
                raise NotFoundError(
                    f"Cart line {line_id} not found.",
                    details={"line_id": line_id},
                )
            if quantity <= 0:
                line.delete()
            else:
                line.quantity = quantity
                line.save(update_fields=["quantity"])
            self._recalculate(cart)
        return self._view(cart)

    def remove_line(self, user_id: str, line_id: int) -> CartView:
        return self.set_line_quantity(user_id, line_id, 0)

    def clear(self, user_id: str) -> CartView:
        self.get_or_create_active_cart(user_id)
        with transaction.atomic():
            cart = self._locked_active_cart(user_id)
            CartLine.objects.filter(cart=cart).delete()
            self._recalculate(cart)
        logger.info(f"Cart {cart.id} cleared")
        return self._view(cart)

    def mark_converted(self, cart_id: uuid.UUID) -> None:
        """Retire a cart after checkout. The next add starts a new one."""
        with transaction.atomic():
            cart = (
                Cart.objects.select_for_update()
                .filter(pk=cart_id, status=CartStatus.ACTIVE)
                .first()
            )
            if cart is None:
                return
            CartLine.objects.filter(cart=cart).delete()
            cart.status = CartStatus.CONVERTED
            cart.total_amount = ZERO
            cart.save(update_fields=["status", "total_amount", "updated_at"])
        logger.info(f"Cart {cart_id} converted")

    # ── internals ─────────────────────────────────────────────

    def _locked_active_cart(self, user_id: str) -> Cart:
        cart = (
            Cart.objects.select_for_update()
            .select_related("currency")
            .filter(user_id=_require_user(user_id), status=CartStatus.ACTIVE)
            .first()
        )
        if cart is None:
            raise NotFoundError(f"User {user_id} has no active cart.")
        return cart

    @staticmethod
    def _recalculate(cart: Cart) -> None:
        lines = list(CartLine.objects.filter(cart=cart))
        cart.total_amount = to_money(
            sum((line.unit_price * line.quantity for line in lines), ZERO)
        )
        if not lines:
            cart.currency = None
            cart.tenant_id = None
        cart.save(
            update_fields=["total_amount", "currency", "tenant_id", "updated_at"]
        )

    @staticmethod
    def _view(cart: Cart) -> CartView:
        cart.refresh_from_db()
        lines = []
        for line in CartLine.objects.filter(cart=cart).select_related("item"):
            entry = describe_item(line.item)
            lines.append(
                CartLineView(
                    line_id=line.pk,
                    item_id=line.item_id,
                    name=entry.display_name(),
                    image_url=entry.image_url(),
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
            )
        return CartView(
            cart_id=cart.id,
            user_id=cart.user_id,
            status=cart.status,
            tenant_id=cart.tenant_id,
            currency_code=None if cart.currency_id is None else cart.currency.code,
            total_amount=cart.total_amount,
            lines=tuple(lines),
        )


def _require_user(user_id) -> str:
    if not user_id or not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("user_id must be a non-empty string.")
    return user_id.strip()
