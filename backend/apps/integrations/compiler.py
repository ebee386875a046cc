"""
Mapping compiler - builds an integration payload from field mappings.
"""

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from .exceptions import MappingValidationError
from .records import ApplicationRecord
from .resolver import resolve
from .transformers import apply_transformation


class MappingRule(Protocol):
    """The fields of a mapping the compiler reads (FieldMapping satisfies this)."""

    source_field: str
    target_field: str
    transformation: str
    default_value: str | None
    is_required: bool
    field_order: int


def split_target_key(target_field: str) -> list[str]:
    """
    Split a dotted target key into nesting segments.

    A key with empty segments (leading, trailing or doubled dots) is used
    verbatim as a single top-level key.
    """
    segments = target_field.split(".")
    if any(not segment for segment in segments):
        return [target_field]
    return segments


def set_nested(payload: dict[str, Any], target_field: str, value: Any) -> None:
    """
    Write value under a possibly dotted key, creating nested objects.

    Later writes win: a scalar standing where an object is needed is replaced.
    """
    *parents, leaf = split_target_key(target_field)
    node = payload
    for segment in parents:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        node = child
    node[leaf] = value


def to_json_value(value: Any) -> Any:
    """Convert native record values to JSON-serializable equivalents."""
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def compile_payload(
    record: ApplicationRecord,
    mappings: Iterable[MappingRule],
    today: date | None = None,
) -> dict[str, Any]:
    """
    Build the outbound payload for a record.

    Mappings are applied in ascending field_order (ties keep their given
    order). For each mapping the source is resolved, an absent value falls
    back to the default, then the transformation is applied. A value the
    transformation rejects (wrong shape) also falls back to the default,
    written verbatim. Non-required absent values are written as null.

    Args:
        record: Application snapshot (real or synthesized)
        mappings: The integration's field mappings
        today: Reference date for date-relative transformations

    Returns:
        The payload object

    Raises:
        MappingValidationError: If a required mapping ends with no value.
            No partial payload is returned.
    """
    payload: dict[str, Any] = {}

    for mapping in sorted(mappings, key=lambda m: m.field_order):
        value = resolve(record, mapping.source_field)
        if value is None and mapping.default_value:
            value = mapping.default_value

        source_value = value
        value = apply_transformation(mapping.transformation, value, record, today=today)
        if value is None and source_value is not None:
            # Rejected by the transformation: use the default as configured
            value = mapping.default_value or None

        if value is None and mapping.is_required:
            raise MappingValidationError(mapping.target_field, mapping.source_field)

        set_nested(payload, mapping.target_field, to_json_value(value))

    return payload
