"""
Custom type definitions for the application.

These types help mypy understand custom attributes added by middleware
and django-ninja authentication.
"""

from django.http import HttpRequest

from apps.core.auth import AuthContext


class AuthenticatedHttpRequest(HttpRequest):
    """
    HttpRequest after BearerAuth succeeded.

    ``auth`` is the AuthContext returned by BearerAuth.authenticate;
    ``auth_context`` is the same object as set by the identity middleware.
    """

    auth: AuthContext
    auth_context: AuthContext
