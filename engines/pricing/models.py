"""
Storefront Pricing — Tenant Configuration Models
==================================================
Tax rules, shipping methods and coupons, all scoped by tenant_id.

These rows are edited by the tenant admin surface. The pricing engine
reads them through engines.pricing.config_store as frozen snapshots;
only Coupon.used_count is written by checkout (engines.pricing.coupons).
"""

from django.db import models


class ShippingMethodType(models.TextChoices):
    FLAT_RATE = "FLAT_RATE", "Flat rate"
    FREE = "FREE", "Free"
    WEIGHT_BASED = "WEIGHT_BASED", "Weight based"
    PRICE_PER_KG = "PRICE_PER_KG", "Price per kg"
    PRICE_BASED = "PRICE_BASED", "Price based"
    FREE_OVER_THRESHOLD = "FREE_OVER_THRESHOLD", "Free over threshold"
    LOCAL_PICKUP = "LOCAL_PICKUP", "Local pickup"


class CouponDiscountType(models.TextChoices):
    PERCENT = "PERCENT", "Percent"
    FIXED = "FIXED", "Fixed amount"
    FREE_SHIPPING = "FREE_SHIPPING", "Free shipping"


class TaxRule(models.Model):
    tenant_id = models.UUIDField()
    name = models.CharField(max_length=120)
    rate = models.DecimalField(
        max_digits=6,
        decimal_places=3,
        help_text="Percent: 10.000 means 10%.",
    )
    applies_to_shipping = models.BooleanField(default=False)
    country_code = models.CharField(
        max_length=2,
        null=True,
        blank=True,
        help_text="NULL for a tenant-wide rule.",
    )
    region_code = models.CharField(max_length=20, null=True, blank=True)
    enabled = models.BooleanField(default=True)

    class Meta:
        db_table = "sf_tax_rules"
        ordering = ["id"]
        indexes = [
            models.Index(
                fields=["tenant_id", "enabled"],
                name="idx_tax_tenant_enabled",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.rate}%)"


class ShippingMethod(models.Model):
    tenant_id = models.UUIDField()
    name = models.CharField(max_length=120)
    method_type = models.CharField(
        max_length=30,
        choices=ShippingMethodType.choices,
    )
    flat_rate = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
    )
    price_per_kg = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
    )
    free_shipping_threshold = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
    )
    country_code = models.CharField(max_length=2, null=True, blank=True)
    region_code = models.CharField(max_length=20, null=True, blank=True)
    enabled = models.BooleanField(default=True)
    sort_order = models.IntegerField(default=0)

    class Meta:
        db_table = "sf_shipping_methods"
        ordering = ["sort_order", "id"]
        indexes = [
            models.Index(
                fields=["tenant_id", "enabled"],
                name="idx_ship_tenant_enabled",
            ),
        ]

    def __str__(self):
        return f"{self.name} [{self.method_type}]"


class Coupon(models.Model):
    tenant_id = models.UUIDField()
    code = models.CharField(
        max_length=64,
        help_text="Stored upper case; lookups are case-insensitive.",
    )
    discount_type = models.CharField(
        max_length=20,
        choices=CouponDiscountType.choices,
    )
    value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        help_text="Percent for PERCENT, amount for FIXED, ignored for FREE_SHIPPING.",
    )
    usage_limit = models.IntegerField(
        null=True,
        blank=True,
        help_text="NULL means unlimited.",
    )
    used_count = models.IntegerField(default=0)
    min_order_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
    )
    max_discount_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
    )
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_to = models.DateTimeField(null=True, blank=True)
    active = models.BooleanField(default=True)

    class Meta:
        db_table = "sf_coupons"
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "code"],
                name="uq_coupon_tenant_code",
            ),
        ]

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.code
