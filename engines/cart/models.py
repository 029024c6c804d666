"""
Storefront Cart — Models
==========================
Cart and CartLine.

RULES:
- At most one ACTIVE cart per user (partial unique constraint)
- One line per item per cart
- total_amount is rewritten from the lines on every mutation
- unit_price is the price captured when the item was first added;
  it is informational, checkout always re-reads catalog prices
"""

import uuid

from django.db import models


class CartStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    CONVERTED = "CONVERTED", "Converted"


class Cart(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.CharField(max_length=255)
    tenant_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Fixed by the first added item; cleared with the cart.",
    )
    status = models.CharField(
        max_length=20,
        choices=CartStatus.choices,
        default=CartStatus.ACTIVE,
    )
    currency = models.ForeignKey(
        "catalog.Currency",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sf_carts"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user_id"],
                condition=models.Q(status="ACTIVE"),
                name="uq_cart_one_active_per_user",
            ),
        ]

    def __str__(self):
        return f"Cart {self.id} ({self.status})"


class CartLine(models.Model):
    cart = models.ForeignKey(
        Cart,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    item = models.ForeignKey(
        "catalog.CatalogItem",
        on_delete=models.CASCADE,
        related_name="+",
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "sf_cart_lines"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["cart", "item"],
                name="uq_cart_line_item",
            ),
        ]

    def __str__(self):
        return f"{self.quantity} × item {self.item_id}"
