"""
Tests for the transformation library.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from apps.integrations.exceptions import ConfigurationError
from apps.integrations.records import ApplicationRecord
from apps.integrations.transformers import (
    Transformation,
    apply_transformation,
    get_transformation_catalog,
    parse_transformation,
)

TODAY = date(2024, 6, 14)


def _record(full_name: str | None = "Jane Mary Doe") -> ApplicationRecord:
    return ApplicationRecord(
        application_id="app-1",
        application={},
        profile={"full_name": full_name} if full_name is not None else {},
    )


def _apply(name: str, value, record: ApplicationRecord | None = None, today: date = TODAY):
    return apply_transformation(name, value, record or _record(), today=today)


class TestCaseTransformations:
    def test_uppercase(self) -> None:
        assert _apply("uppercase", "employed") == "EMPLOYED"

    def test_lowercase(self) -> None:
        assert _apply("lowercase", "Jane@Example.COM") == "jane@example.com"

    def test_integral_decimal_renders_without_fraction(self) -> None:
        assert _apply("uppercase", Decimal("15000.00")) == "15000"

    def test_absent_stays_absent(self) -> None:
        assert _apply("uppercase", None) is None
        assert _apply("lowercase", None) is None

    @pytest.mark.parametrize("value", ["straße", "Jane Mary Doe", "İstanbul", Decimal("15000.00")])
    @pytest.mark.parametrize("name", ["uppercase", "lowercase"])
    def test_idempotent(self, name: str, value) -> None:
        once = _apply(name, value)

        assert _apply(name, once) == once

    def test_sharp_s_expands_when_uppercased(self) -> None:
        assert _apply("uppercase", "straße") == "STRASSE"
        assert _apply("lowercase", "straße") == "straße"


class TestMalformedInput:
    """Every transformation tolerates values of the wrong shape."""

    @pytest.mark.parametrize(
        "value",
        [object(), ["Jane", "Doe"], True, b"Jane Doe", float("nan")],
        ids=["object", "list", "bool", "bytes", "nan"],
    )
    @pytest.mark.parametrize("name", [t.value for t in Transformation])
    def test_never_raises(self, name: str, value) -> None:
        _apply(name, value)

    @pytest.mark.parametrize("value", [object(), ["1990-05-14"], True, b"1990-05-14"])
    def test_date_transformations_reject_non_dates(self, value) -> None:
        assert _apply("calculate_age", value) is None
        assert _apply("date_format", value) is None


class TestNameTransformations:
    def test_split_first(self) -> None:
        assert _apply("split_first", "Jane Mary Doe") == "Jane"

    def test_split_last_keeps_remainder(self) -> None:
        assert _apply("split_last", "Jane Mary Doe") == "Mary Doe"

    def test_split_last_single_token(self) -> None:
        """A one-word name has no last part."""
        assert _apply("split_last", "Cher") is None

    def test_absent_value_falls_back_to_profile_name(self) -> None:
        record = _record("John Smith")

        assert _apply("split_first", None, record) == "John"
        assert _apply("split_last", None, record) == "Smith"

    def test_no_name_anywhere(self) -> None:
        assert _apply("split_first", None, _record(None)) is None


class TestCalculateAge:
    def test_day_before_birthday(self) -> None:
        assert _apply("calculate_age", date(2000, 6, 15), today=date(2024, 6, 14)) == 23

    def test_on_birthday(self) -> None:
        assert _apply("calculate_age", date(2000, 6, 15), today=date(2024, 6, 15)) == 24

    def test_iso_string(self) -> None:
        assert _apply("calculate_age", "1990-05-14") == 34

    def test_datetime(self) -> None:
        assert _apply("calculate_age", datetime(1990, 5, 14, 8, 30)) == 34

    def test_future_date_is_absent(self) -> None:
        assert _apply("calculate_age", date(2030, 1, 1)) is None

    @pytest.mark.parametrize("value", ["not a date", 12, None])
    def test_malformed_input_is_absent(self, value) -> None:
        assert _apply("calculate_age", value) is None


class TestAppendMonths:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (36, "36 months"),
            (Decimal("12.0"), "12 months"),
            ("24", "24 months"),
        ],
    )
    def test_appends_suffix(self, value, expected: str) -> None:
        assert _apply("append_months", value) == expected

    def test_absent(self) -> None:
        assert _apply("append_months", None) is None


class TestGenerateEmail:
    def test_first_and_last_token(self) -> None:
        assert _apply("generate_email", None) == "jane.doe@noemail.loanconsole.app"

    def test_accents_are_folded(self) -> None:
        record = _record("José Álvarez")

        assert _apply("generate_email", None, record) == "jose.alvarez@noemail.loanconsole.app"

    def test_single_name(self) -> None:
        assert _apply("generate_email", None, _record("Cher")) == "cher@noemail.loanconsole.app"

    def test_uses_value_when_profile_has_no_name(self) -> None:
        record = _record(None)

        assert _apply("generate_email", "Ana Lopez", record) == "ana.lopez@noemail.loanconsole.app"

    def test_configured_domain(self, settings) -> None:
        settings.INTEGRATIONS_GENERATED_EMAIL_DOMAIN = "leads.example.org"

        assert _apply("generate_email", None) == "jane.doe@leads.example.org"

    def test_no_name(self) -> None:
        assert _apply("generate_email", None, _record(None)) is None


class TestDateFormat:
    def test_default_format(self) -> None:
        assert _apply("date_format", date(1990, 5, 14)) == "14/05/1990"

    def test_iso_string(self) -> None:
        assert _apply("date_format", "1990-05-14") == "14/05/1990"

    def test_configured_format(self, settings) -> None:
        settings.INTEGRATIONS_DATE_FORMAT = "%Y%m%d"

        assert _apply("date_format", date(1990, 5, 14)) == "19900514"

    def test_unparseable_is_absent(self) -> None:
        assert _apply("date_format", "14th of May") is None


class TestCatalog:
    def test_none_is_identity(self) -> None:
        value = {"nested": True}
        assert _apply("none", value) is value

    def test_empty_name_is_identity(self) -> None:
        assert parse_transformation("") is Transformation.NONE
        assert parse_transformation(None) is Transformation.NONE

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            parse_transformation("reverse")

        assert exc_info.value.field == "transformation"

    def test_catalog_lists_every_transformation(self) -> None:
        catalog = get_transformation_catalog()

        assert [entry["name"] for entry in catalog] == [
            "none",
            "uppercase",
            "lowercase",
            "split_first",
            "split_last",
            "calculate_age",
            "append_months",
            "generate_email",
            "date_format",
        ]
        assert all(entry["label"] for entry in catalog)
