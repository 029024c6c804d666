import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Currency",
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
                ("code", models.CharField(max_length=3, unique=True)),
                ("symbol", models.CharField(blank=True, default="", max_length=8)),
            ],
            options={
                "db_table": "sf_currencies",
                "ordering": ["code"],
            },
        ),
        migrations.CreateModel(
            name="CatalogItem",
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
                (
                    "kind",
                    models.CharField(
                        choices=[("PRODUCT", "Product"), ("ACTIVITY", "Activity")],
                        default="PRODUCT",
                        max_length=20,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("image_url", models.CharField(blank=True, default="", max_length=500)),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("stock_quantity", models.IntegerField(blank=True, null=True)),
                (
                    "weight_kg",
                    models.DecimalField(
                        blank=True, decimal_places=3, max_digits=10, null=True
                    ),
                ),
                ("location", models.CharField(blank=True, default="", max_length=255)),
                ("starts_at", models.DateTimeField(blank=True, null=True)),
                ("active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
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
                "db_table": "sf_catalog_items",
                "ordering": ["id"],
                "indexes": [
                    models.Index(
                        fields=["tenant_id", "active"],
                        name="idx_item_tenant_active",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(stock_quantity__isnull=True)
                            | models.Q(stock_quantity__gte=0)
                        ),
                        name="chk_item_stock_non_negative",
                    )
                ],
            },
        ),
    ]
