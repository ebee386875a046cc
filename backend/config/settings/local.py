"""
Local development settings.

Extends base settings with development-friendly defaults.
"""

from apps.core.logging import configure_logging

from .base import *  # noqa: F403
from .base import settings

DEBUG = True
ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

# Local receivers (e.g. a request bin on localhost) are allowed in development
INTEGRATIONS_ALLOW_PRIVATE_URLS = True

configure_logging(json_format=False, log_level=settings.LOG_LEVEL)
