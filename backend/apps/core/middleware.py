"""
Core middleware.
"""

import uuid
from collections.abc import Callable

from django.http import HttpRequest, HttpResponse

from apps.core.auth import AuthContext
from apps.core.logging import bind_contextvars, clear_contextvars
from apps.core.utils import get_client_ip

CORRELATION_ID_HEADER = "X-Correlation-ID"


class RequestContextMiddleware:
    """
    Binds request-scoped logging context and a default auth context.

    Every log line emitted while handling the request carries the
    correlation ID, method, path and client IP. The identity provider
    middleware (placed after this one) replaces ``request.auth_context``
    when the caller is authenticated.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())

        clear_contextvars()
        bind_contextvars(
            correlation_id=correlation_id,
            **{
                "http.method": request.method,
                "http.url_details.path": request.path,
                "request.ip_address": get_client_ip(request),
            },
        )
        request.auth_context = AuthContext()  # type: ignore[attr-defined]

        try:
            response = self.get_response(request)
        finally:
            clear_contextvars()

        response[CORRELATION_ID_HEADER] = correlation_id
        return response
