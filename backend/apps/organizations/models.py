"""
Organizations models - multi-tenancy foundation.
"""

from django.db import models


class Organization(models.Model):
    """
    A lender operating the console.

    The identity provider is the source of truth for organizations; this
    record carries the console's local reference and display data.
    """

    external_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Organization identifier at the identity provider",
    )

    name = models.CharField(max_length=255)
    slug = models.SlugField(
        max_length=255,
        unique=True,
        help_text="URL-safe identifier, e.g. 'acme-lending'",
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name
