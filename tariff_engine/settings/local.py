"""
Local development settings for tariff_engine project.
"""

import copy

from .base import *  # noqa: F403, F401
from .base import LOGGING

# Development-specific settings
DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

LOGGING = copy.deepcopy(LOGGING)
LOGGING["loggers"]["billing"]["level"] = "DEBUG"
