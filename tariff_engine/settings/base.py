"""
Base settings for tariff_engine project.

Environment-specific modules (local, test) import everything from here and
override what they need.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-tariff-engine-dev-key")

DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() == "true"

ALLOWED_HOSTS = [host for host in os.getenv("DJANGO_ALLOWED_HOSTS", "").split(",") if host]

INSTALLED_APPS = [
    "tariffs",
    "billing",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "tariff_engine.urls"

WSGI_APPLICATION = "tariff_engine.wsgi.application"

# No persistence: rate tables are configuration files, bills are computed per request
DATABASES = {}

USE_TZ = True
TIME_ZONE = "Asia/Bangkok"
LANGUAGE_CODE = "en-us"

# Rate tables, one YAML document per provider (see tariffs.yaml_service)
TARIFF_RATE_FILES = [
    Path(path)
    for path in os.getenv(
        "TARIFF_RATE_FILES",
        ",".join(
            str(BASE_DIR / "tariffs" / "data" / name) for name in ("mea.yaml", "pea.yaml")
        ),
    ).split(",")
    if path
]

# Memoization of bill calculations (billing.cache)
BILLING_CACHE_ENABLED = os.getenv("BILLING_CACHE_ENABLED", "true").lower() == "true"
BILLING_CACHE_TIMEOUT = int(os.getenv("BILLING_CACHE_TIMEOUT", "300"))

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    },
    "billing": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "billing",
        "TIMEOUT": BILLING_CACHE_TIMEOUT,
        "OPTIONS": {"MAX_ENTRIES": 10000},
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("DJANGO_LOG_LEVEL", "WARNING"),
    },
    "loggers": {
        "billing": {
            "handlers": ["console"],
            "level": os.getenv("BILLING_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "tariffs": {
            "handlers": ["console"],
            "level": os.getenv("BILLING_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
