from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "engines.orders"
    label = "orders"
    verbose_name = "Storefront Orders"
