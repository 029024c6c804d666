"""
Storefront Catalog — Models
=============================
Currency and CatalogItem.

The stock record is embedded in the item row (stock_quantity). It is
changed only through engines.catalog.stock, which issues conditional
updates; a NULL stock_quantity means the item is not stock-tracked.
"""

from django.db import models


class ItemKind(models.TextChoices):
    PRODUCT = "PRODUCT", "Product"
    ACTIVITY = "ACTIVITY", "Activity"


class Currency(models.Model):
    code = models.CharField(
        max_length=3,
        unique=True,
        help_text="ISO-4217 code, upper case (e.g. USD).",
    )
    symbol = models.CharField(max_length=8, blank=True, default="")

    class Meta:
        db_table = "sf_currencies"
        ordering = ["code"]

    def __str__(self):
        return self.code


class CatalogItem(models.Model):
    tenant_id = models.UUIDField(
        help_text="Owner project (storefront) that sells this item.",
    )
    kind = models.CharField(
        max_length=20,
        choices=ItemKind.choices,
        default=ItemKind.PRODUCT,
    )
    name = models.CharField(max_length=255)
    image_url = models.CharField(max_length=500, blank=True, default="")
    price = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.ForeignKey(
        Currency,
        on_delete=models.PROTECT,
        related_name="+",
    )
    stock_quantity = models.IntegerField(
        null=True,
        blank=True,
        help_text="Units (or seats) available. NULL means not tracked.",
    )
    weight_kg = models.DecimalField(
        max_digits=10,
        decimal_places=3,
        null=True,
        blank=True,
        help_text="Per-unit shipping weight.",
    )
    # ── Activity-only attributes ──────────────────────────────
    location = models.CharField(max_length=255, blank=True, default="")
    starts_at = models.DateTimeField(null=True, blank=True)

    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sf_catalog_items"
        ordering = ["id"]
        indexes = [
            models.Index(
                fields=["tenant_id", "active"],
                name="idx_item_tenant_active",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(stock_quantity__isnull=True)
                    | models.Q(stock_quantity__gte=0)
                ),
                name="chk_item_stock_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.kind}:{self.pk} {self.name}"
