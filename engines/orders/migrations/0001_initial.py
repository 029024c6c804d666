import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("code", models.CharField(max_length=32, unique=True)),
                ("user_id", models.CharField(max_length=255)),
                ("tenant_id", models.UUIDField()),
                ("items_subtotal", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "shipping_total",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                (
                    "item_tax_total",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                (
                    "shipping_tax_total",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                ("coupon_code", models.CharField(blank=True, max_length=64, null=True)),
                (
                    "coupon_discount",
                    models.DecimalField(decimal_places=2, default=0, max_digits=12),
                ),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("payment_method", models.CharField(max_length=32)),
                ("shipping_method_id", models.BigIntegerField(blank=True, null=True)),
                (
                    "shipping_method_name",
                    models.CharField(blank=True, default="", max_length=120),
                ),
                ("shipping_address", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("CANCEL_REQUESTED", "Cancel requested"),
                            ("CANCELED", "Canceled"),
                            ("COMPLETED", "Completed"),
                            ("REJECTED", "Rejected"),
                            ("REFUNDED", "Refunded"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
                ("cancel_requested_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "currency",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="catalog.currency",
                    ),
                ),
            ],
            options={
                "db_table": "sf_orders",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["tenant_id", "status", "created_at"],
                        name="idx_order_tenant_status",
                    ),
                    models.Index(
                        fields=["user_id", "created_at"],
                        name="idx_order_user_created",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderLine",
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
                ("item_id", models.BigIntegerField()),
                ("item_name", models.CharField(max_length=255)),
                ("image_url", models.CharField(blank=True, default="", max_length=500)),
                ("quantity", models.PositiveIntegerField()),
                (
                    "unit_price_at_purchase",
                    models.DecimalField(decimal_places=2, max_digits=12),
                ),
                ("line_subtotal", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lines",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "sf_order_lines",
                "ordering": ["id"],
                "indexes": [
                    models.Index(fields=["item_id"], name="idx_order_line_item"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderSequence",
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
                ("tenant_id", models.UUIDField(unique=True)),
                ("code_key", models.CharField(default="SHOP", max_length=6)),
                ("next_value", models.BigIntegerField(default=1)),
            ],
            options={
                "db_table": "sf_order_sequences",
            },
        ),
    ]
