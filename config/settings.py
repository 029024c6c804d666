"""
Storefront – Django Settings (Infrastructure Only)
===================================================
Django serves as the framework container for the storefront checkout core.

Secrets and connection details are injected through the environment.
Nothing sensitive has a compiled-in default: a missing
STOREFRONT_SECRET_KEY stops the process at import time.
"""

import os
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured


def _env(name: str, default=None, *, required: bool = False):
    value = os.environ.get(name)
    if value is None or value == "":
        if required:
            raise ImproperlyConfigured(
                f"Environment variable {name} must be set."
            )
        return default
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = _env("STOREFRONT_SECRET_KEY", required=True)

DEBUG = _env_bool("STOREFRONT_DEBUG", default=False)

ALLOWED_HOSTS = [
    host.strip()
    for host in (_env("STOREFRONT_ALLOWED_HOSTS", "") or "").split(",")
    if host.strip()
]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # ── Storefront engines (leaves first) ─────────────────
    "engines.catalog",
    "engines.pricing",
    "engines.cart",
    "engines.orders",
    "engines.payments",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL & WSGI ────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

# ── Database ──────────────────────────────────────────────────
# SQLite for local development; production injects STOREFRONT_DB_*.
DATABASES = {
    "default": {
        "ENGINE": _env("STOREFRONT_DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": _env("STOREFRONT_DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": _env("STOREFRONT_DB_USER", ""),
        "PASSWORD": _env("STOREFRONT_DB_PASSWORD", ""),
        "HOST": _env("STOREFRONT_DB_HOST", ""),
        "PORT": _env("STOREFRONT_DB_PORT", ""),
        "ATOMIC_REQUESTS": False,
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "storefront": {
            "handlers": ["console"],
            "level": _env("STOREFRONT_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

# ── Storefront engine tunables ────────────────────────────────
STOREFRONT = {
    "RESERVATION_TIMEOUT_MINUTES": int(
        _env("STOREFRONT_RESERVATION_TIMEOUT_MINUTES", "30")
    ),
    "STRIPE_PLATFORM_FEE_PCT": _env("STOREFRONT_STRIPE_PLATFORM_FEE_PCT", "10"),
    "PAYPAL_API_BASE": {
        "SANDBOX": "https://api-m.sandbox.paypal.com",
        "LIVE": "https://api-m.paypal.com",
    },
    "PAYMENT_RETURN_URL": _env("STOREFRONT_PAYMENT_RETURN_URL", ""),
    "PAYMENT_CANCEL_URL": _env("STOREFRONT_PAYMENT_CANCEL_URL", ""),
    "HTTP_TIMEOUT_SECONDS": float(_env("STOREFRONT_HTTP_TIMEOUT_SECONDS", "15")),
}
