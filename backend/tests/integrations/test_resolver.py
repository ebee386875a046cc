"""
Tests for source path resolution.
"""

from datetime import date
from decimal import Decimal

import pytest

from apps.integrations.exceptions import InvalidSourcePathError
from apps.integrations.records import ApplicationRecord
from apps.integrations.resolver import (
    SOURCE_FIELDS,
    SourceKind,
    get_source_field_catalog,
    is_valid_source_path,
    parse_source_path,
    resolve,
    split_full_name,
)


@pytest.fixture
def record() -> ApplicationRecord:
    return ApplicationRecord(
        application_id="app-1",
        application={
            "amount": Decimal("15000.00"),
            "term_months": 36,
            "purpose": "",
            "phone_number": "+15555550123",
        },
        profile={
            "full_name": "Jane Mary Doe",
            "email": "jane@example.com",
            "gender": "   ",
            "date_of_birth": date(1990, 5, 14),
        },
    )


class TestResolve:
    """Tests for resolve()."""

    def test_application_field(self, record: ApplicationRecord) -> None:
        """Unprefixed paths read the application."""
        assert resolve(record, "amount") == Decimal("15000.00")
        assert resolve(record, "term_months") == 36

    def test_profile_field(self, record: ApplicationRecord) -> None:
        """profiles.* paths read the linked profile."""
        assert resolve(record, "profiles.email") == "jane@example.com"
        assert resolve(record, "profiles.date_of_birth") == date(1990, 5, 14)

    def test_same_attribute_on_both_sides(self, record: ApplicationRecord) -> None:
        """phone_number and profiles.phone_number are different sources."""
        assert resolve(record, "phone_number") == "+15555550123"
        assert resolve(record, "profiles.phone_number") is None

    def test_first_and_last_name(self, record: ApplicationRecord) -> None:
        """Name parts split on the first whitespace run."""
        assert resolve(record, "profiles.full_name.first") == "Jane"
        assert resolve(record, "profiles.full_name.last") == "Mary Doe"

    def test_blank_strings_are_absent(self, record: ApplicationRecord) -> None:
        """Empty and whitespace-only values resolve to None."""
        assert resolve(record, "purpose") is None
        assert resolve(record, "profiles.gender") is None

    def test_missing_field_is_absent(self, record: ApplicationRecord) -> None:
        assert resolve(record, "monthly_income") is None

    def test_missing_profile_is_absent(self) -> None:
        """An application without a profile resolves profile paths to None."""
        record = ApplicationRecord(application_id="app-2", application={"amount": 1}, profile={})

        assert resolve(record, "profiles.email") is None
        assert resolve(record, "profiles.full_name.first") is None

    def test_static_resolves_to_none(self, record: ApplicationRecord) -> None:
        """'static' never reads the record; the default is used verbatim."""
        assert resolve(record, "static") is None

    def test_unknown_path_raises(self, record: ApplicationRecord) -> None:
        with pytest.raises(InvalidSourcePathError) as exc_info:
            resolve(record, "profiles.ssn")

        assert exc_info.value.path == "profiles.ssn"
        assert exc_info.value.field == "source_field"


class TestSplitFullName:
    """Tests for split_full_name()."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Jane Mary Doe", ("Jane", "Mary Doe")),
            ("Jane  Doe", ("Jane", "Doe")),
            ("  Jane Doe  ", ("Jane", "Doe")),
            ("Cher", ("Cher", None)),
        ],
    )
    def test_splits_on_first_whitespace(self, name: str, expected: tuple) -> None:
        assert split_full_name(name) == expected

    @pytest.mark.parametrize("name", [None, "", "   ", 42])
    def test_unusable_names(self, name: object) -> None:
        assert split_full_name(name) is None


class TestCatalog:
    """Tests for the source field catalog."""

    def test_catalog_lists_every_source(self) -> None:
        paths = {entry["path"] for entry in get_source_field_catalog()}

        assert paths == set(SOURCE_FIELDS)
        assert {
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
            "profiles.full_name",
            "profiles.full_name.first",
            "profiles.full_name.last",
            "profiles.phone_number",
            "profiles.email",
            "profiles.gender",
            "profiles.date_of_birth",
            "static",
        } <= paths

    def test_catalog_entries_have_labels_and_kinds(self) -> None:
        for entry in get_source_field_catalog():
            assert entry["label"]
            assert entry["kind"] in {k.value for k in SourceKind}

    def test_validity_check(self) -> None:
        assert is_valid_source_path("profiles.email") is True
        assert is_valid_source_path(" amount ") is True
        assert is_valid_source_path("profiles.password") is False
        assert is_valid_source_path("") is False

    def test_parse_source_path(self) -> None:
        source_field = parse_source_path("profiles.full_name.last")

        assert source_field.kind is SourceKind.PROFILE
        assert source_field.attribute == "full_name"
