"""
Tests for application record sources.
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from apps.integrations.exceptions import ApplicationNotFoundError
from apps.integrations.records import (
    ApplicationRecord,
    DatabaseRecordSource,
    RecordSource,
    get_application_record,
    get_record_source,
)

from .factories import LoanApplicationFactory


class StubRecordSource(RecordSource):
    def get_application_record(self, application_id: str) -> ApplicationRecord:
        return ApplicationRecord(application_id=application_id, application={"amount": 1})


@pytest.mark.django_db
class TestDatabaseRecordSource:
    def test_loads_application_and_profile(self) -> None:
        application = LoanApplicationFactory.create()

        record = DatabaseRecordSource().get_application_record(str(application.id))

        assert record.application_id == str(application.id)
        assert record.application["amount"] == Decimal("25000.00")
        assert record.application["term_months"] == 48
        assert record.profile["full_name"] == "John Michael Smith"
        assert record.profile["date_of_birth"] == date(1985, 3, 20)

    def test_application_without_profile(self) -> None:
        application = LoanApplicationFactory.create(profile=None)

        record = DatabaseRecordSource().get_application_record(str(application.id))

        assert record.profile == {}

    @pytest.mark.parametrize("application_id", [str(uuid.uuid4()), "not-a-uuid"])
    def test_unknown_application(self, application_id: str) -> None:
        with pytest.raises(ApplicationNotFoundError) as exc_info:
            DatabaseRecordSource().get_application_record(application_id)

        assert exc_info.value.application_id == application_id


class TestGetRecordSource:
    def test_database_by_default(self) -> None:
        assert isinstance(get_record_source(), DatabaseRecordSource)

    def test_dotted_path(self, settings) -> None:
        settings.INTEGRATIONS_RECORD_SOURCE = "tests.applications.test_records.StubRecordSource"

        record = get_application_record("app-9")

        assert record == ApplicationRecord(application_id="app-9", application={"amount": 1})
