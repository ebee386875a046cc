"""
Application record sources - pluggable access to loan application data.

DatabaseRecordSource: reads the local applications tables (default)
Any other source: a dotted path to a RecordSource subclass, set via
INTEGRATIONS_RECORD_SOURCE
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from django.core.exceptions import ValidationError
from django.utils.module_loading import import_string

from .exceptions import ApplicationNotFoundError

APPLICATION_FIELDS = (
    "amount",
    "purpose",
    "term_months",
    "duration_months",
    "interest_rate",
    "monthly_payment",
    "employment_status",
    "monthly_income",
    "loan_purpose_details",
    "phone_number",
)

PROFILE_FIELDS = (
    "full_name",
    "email",
    "phone_number",
    "gender",
    "date_of_birth",
)


@dataclass(frozen=True)
class ApplicationRecord:
    """
    Read-only snapshot of an application and its linked applicant profile.

    ``application_id`` is None for synthesized sample records.
    """

    application_id: str | None
    application: dict[str, Any] = field(default_factory=dict)
    profile: dict[str, Any] = field(default_factory=dict)


class RecordSource(ABC):
    """Abstract base class for application record sources."""

    @abstractmethod
    def get_application_record(self, application_id: str) -> ApplicationRecord:
        """
        Load one application with its profile.

        Raises:
            ApplicationNotFoundError: If no such application exists
        """
        pass


class DatabaseRecordSource(RecordSource):
    """Reads applications from the apps.applications models."""

    def get_application_record(self, application_id: str) -> ApplicationRecord:
        from apps.applications.models import LoanApplication

        try:
            application = LoanApplication.objects.select_related("profile").get(pk=application_id)
        except (LoanApplication.DoesNotExist, ValidationError, ValueError) as e:
            raise ApplicationNotFoundError(str(application_id)) from e

        profile = application.profile
        return ApplicationRecord(
            application_id=str(application.pk),
            application={name: getattr(application, name) for name in APPLICATION_FIELDS},
            profile=(
                {name: getattr(profile, name) for name in PROFILE_FIELDS}
                if profile is not None
                else {}
            ),
        )


def get_record_source() -> RecordSource:
    """
    Get the configured record source.

    Uses INTEGRATIONS_RECORD_SOURCE setting: 'database' or a dotted path
    to a RecordSource subclass.
    """
    from django.conf import settings

    source = getattr(settings, "INTEGRATIONS_RECORD_SOURCE", "database")
    if source == "database":
        return DatabaseRecordSource()

    source_class = import_string(source)
    return source_class()


def get_application_record(application_id: str) -> ApplicationRecord:
    """Load an application record from the configured source."""
    return get_record_source().get_application_record(application_id)
