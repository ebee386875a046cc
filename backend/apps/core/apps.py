"""Core app configuration."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Shared infrastructure: logging, auth context, validation helpers."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.core"
    verbose_name = "Core"
