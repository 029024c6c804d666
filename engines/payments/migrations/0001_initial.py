import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentMethodConfig",
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
                ("provider_code", models.CharField(max_length=32)),
                ("enabled", models.BooleanField(default=False)),
                ("config_json", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "sf_payment_method_configs",
                "ordering": ["provider_code"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=["tenant_id", "provider_code"],
                        name="uq_payment_method_tenant_provider",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentTransaction",
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
                ("tenant_id", models.UUIDField()),
                ("provider_code", models.CharField(max_length=32)),
                (
                    "provider_reference",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency_code", models.CharField(max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("CREATED", "Created"),
                            ("REQUIRES_ACTION", "Requires action"),
                            ("OFFLINE_PENDING", "Offline pending"),
                            ("PAID", "Paid"),
                            ("FAILED", "Failed"),
                        ],
                        default="CREATED",
                        max_length=20,
                    ),
                ),
                ("failure_reason", models.CharField(blank=True, default="", max_length=255)),
                ("last_event_id", models.CharField(blank=True, default="", max_length=255)),
                ("raw_provider_payload", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_transactions",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "sf_payment_transactions",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["order", "created_at"],
                        name="idx_payment_tx_order",
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(provider_reference__isnull=False),
                        fields=["provider_code", "provider_reference"],
                        name="uq_payment_tx_provider_reference",
                    )
                ],
            },
        ),
    ]
