from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="TaxRule",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("tenant_id", models.UUIDField()),
                ("name", models.CharField(max_length=120)),
                ("rate", models.DecimalField(decimal_places=3, max_digits=6)),
                ("applies_to_shipping", models.BooleanField(default=False)),
                ("country_code", models.CharField(blank=True, max_length=2, null=True)),
                ("region_code", models.CharField(blank=True, max_length=20, null=True)),
                ("enabled", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "sf_tax_rules",
                "ordering": ["id"],
                "indexes": [
                    models.Index(
                        fields=["tenant_id", "enabled"],
                        name="idx_tax_tenant_enabled",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ShippingMethod",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("tenant_id", models.UUIDField()),
                ("name", models.CharField(max_length=120)),
                (
                    "method_type",
                    models.CharField(
                        choices=[
                            ("FLAT_RATE", "Flat rate"),
                            ("FREE", "Free"),
                            ("WEIGHT_BASED", "Weight based"),
                            ("PRICE_PER_KG", "Price per kg"),
                            ("PRICE_BASED", "Price based"),
                            ("FREE_OVER_THRESHOLD", "Free over threshold"),
                            ("LOCAL_PICKUP", "Local pickup"),
                        ],
                        max_length=30,
                    ),
                ),
                (
                    "flat_rate",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                (
                    "price_per_kg",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                (
                    "free_shipping_threshold",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                ("country_code", models.CharField(blank=True, max_length=2, null=True)),
                ("region_code", models.CharField(blank=True, max_length=20, null=True)),
                ("enabled", models.BooleanField(default=True)),
                ("sort_order", models.IntegerField(default=0)),
            ],
            options={
                "db_table": "sf_shipping_methods",
                "ordering": ["sort_order", "id"],
                "indexes": [
                    models.Index(
                        fields=["tenant_id", "enabled"],
                        name="idx_ship_tenant_enabled",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Coupon",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("tenant_id", models.UUIDField()),
                ("code", models.CharField(max_length=64)),
                (
                    "discount_type",
                    models.CharField(
                        choices=[
                            ("PERCENT", "Percent"),
                            ("FIXED", "Fixed amount"),
                            ("FREE_SHIPPING", "Free shipping"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "value",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                ("usage_limit", models.IntegerField(blank=True, null=True)),
                ("used_count", models.IntegerField(default=0)),
                (
                    "min_order_amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                (
                    "max_discount_amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                ("valid_from", models.DateTimeField(blank=True, null=True)),
                ("valid_to", models.DateTimeField(blank=True, null=True)),
                ("active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "sf_coupons",
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["tenant_id", "code"],
                        name="uq_coupon_tenant_code",
                    )
                ],
            },
        ),
    ]
