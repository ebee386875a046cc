"""
Core utility functions.
"""

from typing import cast

from django.http import HttpRequest


def get_client_ip(request: HttpRequest) -> str | None:
    """
    Extract client IP from X-Forwarded-For or REMOTE_ADDR.

    X-Forwarded-For may hold a proxy chain; the first entry is the client.
    """
    x_forwarded_for: str | None = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return cast(str | None, request.META.get("REMOTE_ADDR"))


def truncate(value: str | None, limit: int) -> str:
    """Return at most ``limit`` characters of value, marking the cut."""
    if not value:
        return ""
    if len(value) <= limit:
        return value
    return value[:limit] + "…[truncated]"
