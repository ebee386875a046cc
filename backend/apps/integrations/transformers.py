"""
Transformation library - pure value transformers applied by field mappings.

The catalog is closed: every Transformation member has exactly one handler,
checked when this module is imported. Handlers never raise on malformed
input; they return None (absent) so the mapping's default policy applies.
"""

import re
import unicodedata
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import models
from django.utils import timezone

from apps.core.logging import get_logger

from .exceptions import ConfigurationError
from .records import ApplicationRecord
from .resolver import split_full_name

logger = get_logger(__name__)

DEFAULT_GENERATED_EMAIL_DOMAIN = "noemail.loanconsole.app"
DEFAULT_DATE_FORMAT = "%d/%m/%Y"


class Transformation(models.TextChoices):
    NONE = "none", "None"
    UPPERCASE = "uppercase", "Uppercase"
    LOWERCASE = "lowercase", "Lowercase"
    SPLIT_FIRST = "split_first", "Split First Name"
    SPLIT_LAST = "split_last", "Split Last Name"
    CALCULATE_AGE = "calculate_age", "Calculate Age"
    APPEND_MONTHS = "append_months", 'Append " months"'
    GENERATE_EMAIL = "generate_email", "Generate Email"
    DATE_FORMAT = "date_format", "Format Date"


Handler = Callable[[Any, ApplicationRecord, date], Any]


# =============================================================================
# Value coercion helpers
# =============================================================================


def _as_date(value: Any) -> date | None:
    """Coerce a native date/datetime or ISO-8601 string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            return datetime.fromisoformat(text).date()
    return None


def _as_date_or_datetime(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            return datetime.fromisoformat(text)
    return None


def _stringify(value: Any) -> str:
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return str(value.quantize(Decimal(1)))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _record_full_name(record: ApplicationRecord) -> Any:
    return (record.profile or {}).get("full_name")


def _ascii_tokens(text: str) -> list[str]:
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.findall(r"[a-z0-9]+", folded.lower())


# =============================================================================
# Handlers
# =============================================================================


def _identity(value: Any, record: ApplicationRecord, today: date) -> Any:
    return value


def _uppercase(value: Any, record: ApplicationRecord, today: date) -> Any:
    if value is None:
        return None
    return _stringify(value).upper()


def _lowercase(value: Any, record: ApplicationRecord, today: date) -> Any:
    if value is None:
        return None
    return _stringify(value).lower()


def _split_first(value: Any, record: ApplicationRecord, today: date) -> Any:
    parts = split_full_name(value if value is not None else _record_full_name(record))
    return parts[0] if parts else None


def _split_last(value: Any, record: ApplicationRecord, today: date) -> Any:
    parts = split_full_name(value if value is not None else _record_full_name(record))
    return parts[1] if parts else None


def _calculate_age(value: Any, record: ApplicationRecord, today: date) -> Any:
    born = _as_date(value)
    if born is None or born > today:
        return None
    had_birthday = (today.month, today.day) >= (born.month, born.day)
    return today.year - born.year - (0 if had_birthday else 1)


def _append_months(value: Any, record: ApplicationRecord, today: date) -> Any:
    if value is None or isinstance(value, bool):
        return None
    return f"{_stringify(value)} months"


def _generate_email(value: Any, record: ApplicationRecord, today: date) -> Any:
    name = _record_full_name(record)
    if not isinstance(name, str) or not name.strip():
        name = value
    if not isinstance(name, str):
        return None

    tokens = _ascii_tokens(name)
    if not tokens:
        return None

    local_part = tokens[0] if len(tokens) == 1 else f"{tokens[0]}.{tokens[-1]}"
    domain = getattr(settings, "INTEGRATIONS_GENERATED_EMAIL_DOMAIN", DEFAULT_GENERATED_EMAIL_DOMAIN)
    return f"{local_part}@{domain}"


def _date_format(value: Any, record: ApplicationRecord, today: date) -> Any:
    parsed = _as_date_or_datetime(value)
    if parsed is None:
        return None
    return parsed.strftime(getattr(settings, "INTEGRATIONS_DATE_FORMAT", DEFAULT_DATE_FORMAT))


_HANDLERS: dict[Transformation, Handler] = {
    Transformation.NONE: _identity,
    Transformation.UPPERCASE: _uppercase,
    Transformation.LOWERCASE: _lowercase,
    Transformation.SPLIT_FIRST: _split_first,
    Transformation.SPLIT_LAST: _split_last,
    Transformation.CALCULATE_AGE: _calculate_age,
    Transformation.APPEND_MONTHS: _append_months,
    Transformation.GENERATE_EMAIL: _generate_email,
    Transformation.DATE_FORMAT: _date_format,
}

_unhandled = set(Transformation) - set(_HANDLERS)
if _unhandled:
    raise ImproperlyConfigured(f"Transformations without a handler: {sorted(_unhandled)}")


def parse_transformation(name: str | None) -> Transformation:
    """
    Convert a stored transformation name to the enum.

    Empty values mean no transformation.

    Raises:
        ConfigurationError: If the name is not in the catalog
    """
    if not name:
        return Transformation.NONE
    try:
        return Transformation(name)
    except ValueError as e:
        raise ConfigurationError(f"Unknown transformation: {name!r}", field="transformation") from e


def apply_transformation(
    name: str | Transformation | None,
    value: Any,
    record: ApplicationRecord,
    today: date | None = None,
) -> Any:
    """
    Apply a named transformation to a resolved value.

    Args:
        name: Transformation name (or enum member); empty means identity
        value: Resolved value, None when absent
        record: The record the value came from (used by name-based transformers)
        today: Reference date for age computation (defaults to today)

    Returns:
        The transformed value, or None if the input had the wrong shape
    """
    transformation = parse_transformation(name)
    if today is None:
        today = timezone.localdate()

    try:
        return _HANDLERS[transformation](value, record, today)
    except (TypeError, ValueError, ArithmeticError, AttributeError) as e:
        logger.debug(
            "transformation_input_rejected",
            transformation=str(transformation),
            value_type=type(value).__name__,
            error=str(e),
        )
        return None


def get_transformation_catalog() -> list[dict]:
    """Get all available transformations for the operator UI."""
    return [{"name": t.value, "label": t.label} for t in Transformation]
