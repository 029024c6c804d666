"""
Storefront Orders — Models
============================
Order header, OrderLine and the per-tenant OrderSequence.

RULES (NON-NEGOTIABLE):
- An Order is written once at checkout. Afterwards only its status and
  lifecycle timestamps change, always through a status-guarded update.
- OrderLines are insert-only. unit_price_at_purchase is the price the
  buyer was quoted and is never recomputed from the catalog.
- Neither is ever deleted.
"""

import uuid

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CANCEL_REQUESTED = "CANCEL_REQUESTED", "Cancel requested"
    CANCELED = "CANCELED", "Canceled"
    COMPLETED = "COMPLETED", "Completed"
    REJECTED = "REJECTED", "Rejected"
    REFUNDED = "REFUNDED", "Refunded"


# Fields that may change after the order is persisted.
MUTABLE_ORDER_FIELDS = frozenset(
    {
        "status",
        "updated_at",
        "cancel_requested_at",
        "completed_at",
        "canceled_at",
        "rejected_at",
        "refunded_at",
    }
)


class Order(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(
        max_length=32,
        unique=True,
        help_text="Human-facing order code, KEY-YYMM-XXXXX.",
    )
    user_id = models.CharField(max_length=255)
    tenant_id = models.UUIDField()
    currency = models.ForeignKey(
        "catalog.Currency",
        on_delete=models.PROTECT,
        related_name="+",
    )

    # ── Priced quote snapshot ─────────────────────────────────
    items_subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    shipping_total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    item_tax_total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    shipping_tax_total = models.DecimalField(
        max_digits=12, decimal_places=2, default=0,
    )
    coupon_code = models.CharField(max_length=64, null=True, blank=True)
    coupon_discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)

    payment_method = models.CharField(max_length=32)
    shipping_method_id = models.BigIntegerField(null=True, blank=True)
    shipping_method_name = models.CharField(max_length=120, blank=True, default="")
    shipping_address = models.JSONField(default=dict, blank=True)

    # ── Lifecycle ─────────────────────────────────────────────
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()
    cancel_requested_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "sf_orders"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["tenant_id", "status", "created_at"],
                name="idx_order_tenant_status",
            ),
            models.Index(
                fields=["user_id", "created_at"],
                name="idx_order_user_created",
            ),
        ]

    def save(self, *args, **kwargs):
        """
        GUARD: header fields are frozen once persisted.
        Later saves must name only lifecycle fields in update_fields.
        """
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or not set(update_fields) <= MUTABLE_ORDER_FIELDS:
                raise PermissionError(
                    "Order header is immutable after checkout; "
                    "only status and lifecycle timestamps may change."
                )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("Orders are never deleted.")

    def __str__(self):
        return f"{self.code} ({self.status})"


class OrderLine(models.Model):
    order = models.ForeignKey(
        Order,
        on_delete=models.PROTECT,
        related_name="lines",
    )
    item_id = models.BigIntegerField()
    item_name = models.CharField(max_length=255)
    image_url = models.CharField(max_length=500, blank=True, default="")
    quantity = models.PositiveIntegerField()
    unit_price_at_purchase = models.DecimalField(max_digits=12, decimal_places=2)
    line_subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = "sf_order_lines"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["item_id"], name="idx_order_line_item"),
        ]

    def save(self, *args, **kwargs):
        """GUARD: INSERT only."""
        if not self._state.adding:
            raise PermissionError("Order lines are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("Order lines are never deleted.")

    def __str__(self):
        return f"{self.quantity} × {self.item_name}"


class OrderSequence(models.Model):
    tenant_id = models.UUIDField(unique=True)
    code_key = models.CharField(
        max_length=6,
        default="SHOP",
        help_text="Upper-case alphanumeric prefix for order codes.",
    )
    next_value = models.BigIntegerField(default=1)

    class Meta:
        db_table = "sf_order_sequences"

    def __str__(self):
        return f"{self.code_key} → {self.next_value}"
