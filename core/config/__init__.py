"""
Storefront Core Config — Public API
=====================================
Environment-injected engine tunables.
Per-tenant pricing rules live in engines.pricing.
"""

from core.config.settings import (
    StorefrontSettings,
    load_storefront_settings,
    settings_from_mapping,
)

__all__ = [
    "StorefrontSettings",
    "load_storefront_settings",
    "settings_from_mapping",
]
