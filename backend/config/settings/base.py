"""
Base Django settings for the loan console backend.

Shared configuration for all environments.
"""

from pathlib import Path

from pydantic_settings import BaseSettings

from apps.core.logging import configure_logging


class Settings(BaseSettings):
    """Environment-based configuration using pydantic-settings."""

    SECRET_KEY: str = "django-insecure-change-me-in-production"
    DEBUG: bool = False
    ALLOWED_HOSTS: list[str] = []

    # Database
    DB_NAME: str = "loanconsole"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Integrations
    INTEGRATIONS_RUN_INLINE: bool = False
    INTEGRATIONS_DISPATCH_WORKERS: int = 8
    INTEGRATIONS_RECORD_SOURCE: str = "database"
    INTEGRATIONS_GENERATED_EMAIL_DOMAIN: str = "noemail.loanconsole.app"
    INTEGRATIONS_DATE_FORMAT: str = "%d/%m/%Y"
    INTEGRATIONS_ALLOW_PRIVATE_URLS: bool = False
    INTEGRATIONS_LOG_BODY_LIMIT: int = 10_000

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = settings.SECRET_KEY

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = settings.DEBUG

ALLOWED_HOSTS = settings.ALLOWED_HOSTS

# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Local apps
    "apps.core",
    "apps.organizations",
    "apps.accounts",
    "apps.applications",
    "apps.integrations",
]

MIDDLEWARE = [
    "apps.core.middleware.RequestContextMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

# Database
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": settings.DB_NAME,
        "USER": settings.DB_USER,
        "PASSWORD": settings.DB_PASSWORD,
        "HOST": settings.DB_HOST,
        "PORT": settings.DB_PORT,
    }
}

# Cache (rate limiting)
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

AUTH_USER_MODEL = "accounts.User"

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "static/"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Integrations
INTEGRATIONS_RUN_INLINE = settings.INTEGRATIONS_RUN_INLINE
INTEGRATIONS_DISPATCH_WORKERS = settings.INTEGRATIONS_DISPATCH_WORKERS
INTEGRATIONS_RECORD_SOURCE = settings.INTEGRATIONS_RECORD_SOURCE
INTEGRATIONS_GENERATED_EMAIL_DOMAIN = settings.INTEGRATIONS_GENERATED_EMAIL_DOMAIN
INTEGRATIONS_DATE_FORMAT = settings.INTEGRATIONS_DATE_FORMAT
INTEGRATIONS_ALLOW_PRIVATE_URLS = settings.INTEGRATIONS_ALLOW_PRIVATE_URLS
INTEGRATIONS_LOG_BODY_LIMIT = settings.INTEGRATIONS_LOG_BODY_LIMIT

# Logging (structlog over stdlib logging)
LOGGING_CONFIG = None
configure_logging(json_format=settings.LOG_JSON, log_level=settings.LOG_LEVEL)
