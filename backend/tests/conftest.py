"""
Shared pytest fixtures for all tests.

Factories
---------
Import factories directly from their modules:

    from tests.accounts.factories import UserFactory, OrganizationFactory, MemberFactory
    from tests.applications.factories import LoanApplicationFactory
    from tests.integrations.factories import IntegrationFactory, FieldMappingFactory

Example usage:

    @pytest.mark.django_db
    def test_something():
        org = OrganizationFactory.create()
        integration = IntegrationFactory.create(organization=org)
        FieldMappingFactory.create(integration=integration, source_field="amount")
"""

from collections.abc import Callable, Iterator
from typing import Any, cast

import pytest
from django.core.cache import cache
from django.test import Client, RequestFactory
from django.test.client import WSGIRequest  # type: ignore[attr-defined]

from apps.core.auth import AuthContext
from apps.core.types import AuthenticatedHttpRequest


def make_request_with_auth(request: "WSGIRequest", auth: AuthContext) -> AuthenticatedHttpRequest:
    """
    Set auth on a request and return it typed as AuthenticatedHttpRequest.

    Mirrors what BearerAuth does after the identity middleware accepted
    the token: both request.auth and request.auth_context hold the context.
    """
    request.auth = auth  # type: ignore[attr-defined]
    request.auth_context = auth  # type: ignore[attr-defined]
    return cast(AuthenticatedHttpRequest, request)


@pytest.fixture(autouse=True)
def _clear_cache() -> Iterator[None]:
    """Rate limit counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def request_factory() -> RequestFactory:
    """
    Django request factory for unit testing views.

    Use this to call Django Ninja endpoint functions directly without
    going through routing and middleware.
    """
    return RequestFactory()


@pytest.fixture
def api_client() -> Client:
    """Django test client for full HTTP request/response cycle tests."""
    return Client()


@pytest.fixture
def authenticated_request(
    request_factory: RequestFactory,
) -> Callable[..., AuthenticatedHttpRequest]:
    """
    Factory fixture for creating authenticated requests.

    Example:
        def test_endpoint(authenticated_request, admin_member):
            request = authenticated_request(admin_member, method="post", path="/api/v1/x")
            result = my_endpoint(request)
    """
    from tests.accounts.factories import MemberFactory

    def _make_request(
        member: Any = None,
        method: str = "get",
        path: str = "/",
        data: dict | None = None,
        content_type: str = "application/json",
    ) -> AuthenticatedHttpRequest:
        if member is None:
            member = MemberFactory.create(role="admin")

        method_func = getattr(request_factory, method.lower())
        kwargs: dict[str, Any] = {}
        if data is not None:
            kwargs["data"] = data
            kwargs["content_type"] = content_type

        request = method_func(path, **kwargs)
        return make_request_with_auth(
            request,
            AuthContext(
                user=member.user,
                member=member,
                organization=member.organization,
            ),
        )

    return _make_request


@pytest.fixture
def admin_member(db):
    """Create a member with admin role."""
    from tests.accounts.factories import MemberFactory

    return MemberFactory.create(role="admin")


@pytest.fixture
def member(db):
    """Create a regular (non-admin) member."""
    from tests.accounts.factories import MemberFactory

    return MemberFactory.create(role="member")
