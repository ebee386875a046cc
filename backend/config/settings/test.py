"""
Test settings.

SQLite on disk, so dispatch worker threads can share the test database.
Deliveries run inline so tests observe their results.
"""

import tempfile
from pathlib import Path

from .base import *  # noqa: F403

SECRET_KEY = "test-secret-key"  # noqa: S105
DEBUG = False
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": Path(tempfile.gettempdir()) / "loan_console.sqlite3",
        "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
        "TEST": {"NAME": Path(tempfile.gettempdir()) / "test_loan_console.sqlite3"},
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

INTEGRATIONS_RUN_INLINE = True
INTEGRATIONS_ALLOW_PRIVATE_URLS = False
INTEGRATIONS_RECORD_SOURCE = "database"
INTEGRATIONS_GENERATED_EMAIL_DOMAIN = "noemail.loanconsole.app"
INTEGRATIONS_DATE_FORMAT = "%d/%m/%Y"
INTEGRATIONS_LOG_BODY_LIMIT = 10_000
