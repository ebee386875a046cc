"""
Tests for core security module.

Tests the BearerAuth authentication class and the require_admin decorator.
"""

import pytest
from django.test import RequestFactory
from ninja.errors import HttpError

from apps.core.auth import AuthContext
from apps.core.security import BearerAuth, require_admin
from tests.accounts.factories import MemberFactory
from tests.conftest import make_request_with_auth


@pytest.mark.django_db
class TestBearerAuth:
    """Tests for BearerAuth authentication class."""

    def test_returns_upstream_auth_context(self, request_factory: RequestFactory) -> None:
        member = MemberFactory.create()
        request = request_factory.get("/")
        context = AuthContext(user=member.user, member=member, organization=member.organization)
        request.auth_context = context

        assert BearerAuth().authenticate(request, "session-token") is context

    def test_returns_none_without_auth_context(self, request_factory: RequestFactory) -> None:
        request = request_factory.get("/")

        assert BearerAuth().authenticate(request, "session-token") is None

    def test_returns_none_when_not_authenticated(self, request_factory: RequestFactory) -> None:
        request = request_factory.get("/")
        request.auth_context = AuthContext(failed=True)

        assert BearerAuth().authenticate(request, "session-token") is None

    def test_returns_none_for_empty_token(self, request_factory: RequestFactory) -> None:
        member = MemberFactory.create()
        request = request_factory.get("/")
        request.auth_context = AuthContext(
            user=member.user, member=member, organization=member.organization
        )

        assert BearerAuth().authenticate(request, "") is None


@pytest.mark.django_db
class TestRequireAdmin:
    """Tests for require_admin decorator."""

    @staticmethod
    @require_admin
    def _endpoint(request, integration_id: str) -> str:
        """Endpoint docstring."""
        return f"ok:{integration_id}"

    def _request(self, request_factory: RequestFactory, role: str | None):
        request = request_factory.get("/")
        if role is None:
            return make_request_with_auth(request, AuthContext())
        member = MemberFactory.create(role=role)
        return make_request_with_auth(
            request,
            AuthContext(user=member.user, member=member, organization=member.organization),
        )

    def test_admin_passes_through(self, request_factory: RequestFactory) -> None:
        request = self._request(request_factory, "admin")

        assert self._endpoint(request, integration_id="int_1") == "ok:int_1"

    def test_member_gets_403(self, request_factory: RequestFactory) -> None:
        request = self._request(request_factory, "member")

        with pytest.raises(HttpError) as exc_info:
            self._endpoint(request, integration_id="int_1")

        assert exc_info.value.status_code == 403

    def test_unauthenticated_gets_401(self, request_factory: RequestFactory) -> None:
        request = self._request(request_factory, None)

        with pytest.raises(HttpError) as exc_info:
            self._endpoint(request, integration_id="int_1")

        assert exc_info.value.status_code == 401

    def test_preserves_metadata(self) -> None:
        assert self._endpoint.__name__ == "_endpoint"
        assert self._endpoint.__doc__ == "Endpoint docstring."
