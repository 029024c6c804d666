from django.apps import AppConfig


class CartConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "engines.cart"
    label = "cart"
    verbose_name = "Storefront Cart"
