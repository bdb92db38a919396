"""
Test settings for tariff_engine project.
"""

import copy

from .base import *  # noqa: F403, F401
from .base import BILLING_CACHE_TIMEOUT, LOGGING

DEBUG = False

ALLOWED_HOSTS = ["testserver"]

# Each test process gets its own cache; tests that need a cold cache clear it
CACHES = {
    "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
    "billing": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "billing-tests",
        "TIMEOUT": BILLING_CACHE_TIMEOUT,
    },
}

# Let app log records reach the root logger so pytest's caplog sees them
LOGGING = copy.deepcopy(LOGGING)
for logger_config in LOGGING["loggers"].values():
    logger_config["propagate"] = True
