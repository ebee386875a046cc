"""
Field resolver - looks up mapping source paths in an application record.

Source paths come from a fixed catalog so that an unknown path is a
configuration error caught when the mapping is saved, not at dispatch.
"""

import enum
from dataclasses import dataclass
from typing import Any

from .exceptions import InvalidSourcePathError
from .records import ApplicationRecord

STATIC_SOURCE = "static"
PROFILE_PREFIX = "profiles."


class SourceKind(enum.StrEnum):
    APPLICATION = "application"
    PROFILE = "profile"
    STATIC = "static"


class NamePart(enum.StrEnum):
    FIRST = "first"
    LAST = "last"


@dataclass(frozen=True)
class SourceField:
    """Definition of a mappable source field."""

    path: str
    label: str
    kind: SourceKind
    attribute: str | None = None
    name_part: NamePart | None = None


SOURCE_FIELDS: dict[str, SourceField] = {}


def _register(source_field: SourceField) -> SourceField:
    """Register a source field in the catalog."""
    SOURCE_FIELDS[source_field.path] = source_field
    return source_field


def _application(attribute: str, label: str) -> SourceField:
    return _register(SourceField(attribute, label, SourceKind.APPLICATION, attribute))


def _profile(attribute: str, label: str, name_part: NamePart | None = None) -> SourceField:
    path = f"{PROFILE_PREFIX}{attribute}"
    if name_part is not None:
        path = f"{path}.{name_part}"
    return _register(SourceField(path, label, SourceKind.PROFILE, attribute, name_part))


# =============================================================================
# Application fields
# =============================================================================

_application("amount", "Loan Amount")
_application("purpose", "Loan Purpose")
_application("term_months", "Term (Months)")
_application("duration_months", "Duration (Months)")
_application("interest_rate", "Interest Rate")
_application("monthly_payment", "Monthly Payment")
_application("employment_status", "Employment Status")
_application("monthly_income", "Monthly Income")
_application("loan_purpose_details", "Purpose Details")
_application("phone_number", "Phone Number")

# =============================================================================
# Profile fields
# =============================================================================

_profile("full_name", "Full Name")
_profile("full_name", "First Name", NamePart.FIRST)
_profile("full_name", "Last Name", NamePart.LAST)
_profile("phone_number", "Phone (Profile)")
_profile("email", "Email")
_profile("gender", "Gender")
_profile("date_of_birth", "Date of Birth")

# =============================================================================
# Static
# =============================================================================

_register(SourceField(STATIC_SOURCE, "Static Value", SourceKind.STATIC))


def parse_source_path(path: str) -> SourceField:
    """
    Look up a source path in the catalog.

    Raises:
        InvalidSourcePathError: If the path is not a known source field
    """
    source_field = SOURCE_FIELDS.get((path or "").strip())
    if source_field is None:
        raise InvalidSourcePathError(path)
    return source_field


def is_valid_source_path(path: str) -> bool:
    """Check whether a source path is in the catalog."""
    return (path or "").strip() in SOURCE_FIELDS


def split_full_name(full_name: Any) -> tuple[str, str | None] | None:
    """
    Split a full name on the first whitespace run.

    Returns (first, rest) where rest is None for single-token names,
    or None when there is no usable name.
    """
    if not isinstance(full_name, str):
        return None
    parts = full_name.split(None, 1)
    if not parts:
        return None
    first = parts[0]
    rest = parts[1].strip() if len(parts) > 1 else None
    return first, rest or None


def _normalize(value: Any) -> Any:
    """Map null and blank strings to absent (None)."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def resolve(record: ApplicationRecord, path: str | SourceField) -> Any:
    """
    Resolve a source path against an application record.

    Never raises for missing data: missing, null and blank fields resolve
    to None so the mapping's default can apply. ``static`` always resolves
    to None; the compiler then uses the default value verbatim.

    Raises:
        InvalidSourcePathError: If a string path is not in the catalog
    """
    source_field = path if isinstance(path, SourceField) else parse_source_path(path)

    if source_field.kind is SourceKind.STATIC:
        return None

    section = record.application if source_field.kind is SourceKind.APPLICATION else record.profile
    value = _normalize((section or {}).get(source_field.attribute))

    if source_field.name_part is None or value is None:
        return value

    parts = split_full_name(value)
    if parts is None:
        return None
    first, rest = parts
    return first if source_field.name_part is NamePart.FIRST else rest


def get_source_field_catalog() -> list[dict]:
    """Get all mappable source fields for the operator UI."""
    return [
        {"path": f.path, "label": f.label, "kind": str(f.kind)}
        for f in SOURCE_FIELDS.values()
    ]
