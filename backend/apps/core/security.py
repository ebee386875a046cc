"""
Core security - authentication classes for API.
"""

from collections.abc import Callable
from functools import wraps

from ninja.security import HttpBearer

from apps.core.auth import AuthContext


class BearerAuth(HttpBearer):
    """
    Bearer token authentication for API endpoints.

    Token validation happens in the identity provider middleware, which
    stores the resulting AuthContext on ``request.auth_context``. This class
    only requires the header and exposes that context as ``request.auth``.
    It also provides the OpenAPI security scheme documentation.
    """

    def authenticate(self, request, token: str) -> AuthContext | None:
        """
        Return the request's auth context if the token was accepted upstream.

        Returns None (triggers 401) when no token is present or the
        upstream middleware did not authenticate the request.
        """
        if not token:
            return None

        context = getattr(request, "auth_context", None)
        if context is None or not context.is_authenticated:
            return None
        return context


def require_admin(func: Callable) -> Callable:
    """
    Decorator for endpoints that require an organization admin.

    Must be applied below the router decorator so BearerAuth has already
    set ``request.auth``.

    Raises:
        HttpError 401: If not authenticated
        HttpError 403: If the member is not an admin
    """

    @wraps(func)
    def wrapper(request, *args, **kwargs):
        request.auth.require_admin()
        return func(request, *args, **kwargs)

    return wrapper
