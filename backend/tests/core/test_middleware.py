"""
Tests for RequestContextMiddleware.

Tests correlation IDs, logging context binding and the default auth context.
"""

from unittest.mock import MagicMock

import pytest
from django.http import HttpResponse
from django.test import RequestFactory
from structlog.contextvars import get_contextvars

from apps.core.auth import AuthContext
from apps.core.logging import clear_contextvars
from apps.core.middleware import CORRELATION_ID_HEADER, RequestContextMiddleware


@pytest.fixture(autouse=True)
def _clean_context():
    clear_contextvars()
    yield
    clear_contextvars()


def make_middleware(get_response=None) -> RequestContextMiddleware:
    return RequestContextMiddleware(get_response or MagicMock(return_value=HttpResponse()))


class TestCorrelationId:
    """Tests for correlation ID propagation."""

    def test_incoming_header_is_echoed(self, request_factory: RequestFactory) -> None:
        request = request_factory.get("/api/v1/integrations/", HTTP_X_CORRELATION_ID="corr-42")

        response = make_middleware()(request)

        assert response[CORRELATION_ID_HEADER] == "corr-42"

    def test_generated_when_missing(self, request_factory: RequestFactory) -> None:
        first = make_middleware()(request_factory.get("/"))
        second = make_middleware()(request_factory.get("/"))

        assert len(first[CORRELATION_ID_HEADER]) == 36
        assert first[CORRELATION_ID_HEADER] != second[CORRELATION_ID_HEADER]


class TestLoggingContext:
    """Tests for request-scoped logging context."""

    def test_context_bound_during_request(self, request_factory: RequestFactory) -> None:
        seen = {}

        def get_response(request):
            seen.update(get_contextvars())
            return HttpResponse()

        request = request_factory.post(
            "/api/v1/integrations/int_1/test",
            HTTP_X_CORRELATION_ID="corr-1",
            HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1",
        )
        make_middleware(get_response)(request)

        assert seen["correlation_id"] == "corr-1"
        assert seen["http.method"] == "POST"
        assert seen["http.url_details.path"] == "/api/v1/integrations/int_1/test"
        assert seen["request.ip_address"] == "203.0.113.7"

    def test_context_cleared_after_request(self, request_factory: RequestFactory) -> None:
        make_middleware()(request_factory.get("/"))

        assert get_contextvars() == {}

    def test_context_cleared_when_view_raises(self, request_factory: RequestFactory) -> None:
        middleware = make_middleware(MagicMock(side_effect=RuntimeError("boom")))

        with pytest.raises(RuntimeError):
            middleware(request_factory.get("/"))

        assert get_contextvars() == {}


class TestDefaultAuthContext:
    def test_request_starts_unauthenticated(self, request_factory: RequestFactory) -> None:
        captured = {}

        def get_response(request):
            captured["auth_context"] = request.auth_context
            return HttpResponse()

        make_middleware(get_response)(request_factory.get("/"))

        assert isinstance(captured["auth_context"], AuthContext)
        assert captured["auth_context"].is_authenticated is False
