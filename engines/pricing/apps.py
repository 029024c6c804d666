from django.apps import AppConfig


class PricingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "engines.pricing"
    label = "pricing"
    verbose_name = "Storefront Pricing"
