"""
Integration API schemas (Pydantic models for request/response).
"""

from datetime import datetime
from typing import Any, Literal

from django.conf import settings
from ninja import Schema
from pydantic import Field, field_validator

from apps.core.url_validation import SSRFError, validate_destination_url

from .models import (
    MAX_RETRY_ATTEMPTS,
    MAX_RETRY_DELAY_SECONDS,
    MAX_TIMEOUT_SECONDS,
    MIN_TIMEOUT_SECONDS,
)
from .resolver import is_valid_source_path
from .transformers import Transformation

HttpMethod = Literal["POST", "PUT", "PATCH"]


def _check_url(v: str) -> str:
    try:
        return validate_destination_url(
            v,
            allow_private=getattr(settings, "INTEGRATIONS_ALLOW_PRIVATE_URLS", False),
        )
    except SSRFError as e:
        raise ValueError(str(e)) from e


def _check_headers(v: dict[str, str]) -> dict[str, str]:
    for name in v:
        if not name.strip():
            raise ValueError("Header names must not be empty")
    return v


def _check_source_field(v: str) -> str:
    v = v.strip()
    if not is_valid_source_path(v):
        raise ValueError(f"Unknown source field: {v}")
    return v


def _check_transformation(v: str) -> str:
    if v not in Transformation.values:
        raise ValueError(f"Unknown transformation: {v}")
    return v


def _check_target_field(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Target field is required")
    if any(not segment for segment in v.split(".")):
        raise ValueError("Target field must not contain empty segments")
    return v


# =============================================================================
# Request Schemas
# =============================================================================


class IntegrationCreate(Schema):
    """Schema for creating an integration."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    url: str = Field(..., min_length=1, max_length=2048)
    api_key: str = Field(default="", max_length=255)
    method: HttpMethod = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True
    retry_attempts: int = Field(default=3, ge=0, le=MAX_RETRY_ATTEMPTS)
    retry_delay_seconds: int = Field(default=60, ge=0, le=MAX_RETRY_DELAY_SECONDS)
    timeout_seconds: int = Field(default=30, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure URL is an absolute http(s) URL to a public host."""
        return _check_url(v)

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, v: dict[str, str]) -> dict[str, str]:
        return _check_headers(v)


class IntegrationUpdate(Schema):
    """Schema for updating an integration. Only provided fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    url: str | None = Field(default=None, min_length=1, max_length=2048)
    api_key: str | None = Field(default=None, max_length=255)
    method: HttpMethod | None = None
    headers: dict[str, str] | None = None
    is_active: bool | None = None
    retry_attempts: int | None = Field(default=None, ge=0, le=MAX_RETRY_ATTEMPTS)
    retry_delay_seconds: int | None = Field(default=None, ge=0, le=MAX_RETRY_DELAY_SECONDS)
    timeout_seconds: int | None = Field(
        default=None, ge=MIN_TIMEOUT_SECONDS, le=MAX_TIMEOUT_SECONDS
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Ensure URL is an absolute http(s) URL to a public host."""
        return _check_url(v) if v is not None else v

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, v: dict[str, str] | None) -> dict[str, str] | None:
        return _check_headers(v) if v is not None else v


class FieldMappingCreate(Schema):
    """Schema for adding a field mapping to an integration."""

    source_field: str = Field(..., min_length=1, max_length=100)
    target_field: str = Field(..., min_length=1, max_length=255)
    transformation: str = Transformation.NONE.value
    default_value: str = Field(default="", max_length=1000)
    is_required: bool = False
    field_order: int | None = Field(
        default=None,
        description="Position in the mapping table; appended at the end when omitted",
    )

    @field_validator("source_field")
    @classmethod
    def validate_source_field(cls, v: str) -> str:
        return _check_source_field(v)

    @field_validator("target_field")
    @classmethod
    def validate_target_field(cls, v: str) -> str:
        return _check_target_field(v)

    @field_validator("transformation")
    @classmethod
    def validate_transformation(cls, v: str) -> str:
        return _check_transformation(v)


class FieldMappingUpdate(Schema):
    """Schema for editing a field mapping."""

    source_field: str | None = Field(default=None, min_length=1, max_length=100)
    target_field: str | None = Field(default=None, min_length=1, max_length=255)
    transformation: str | None = None
    default_value: str | None = Field(default=None, max_length=1000)
    is_required: bool | None = None
    field_order: int | None = None

    @field_validator("source_field")
    @classmethod
    def validate_source_field(cls, v: str | None) -> str | None:
        return _check_source_field(v) if v is not None else v

    @field_validator("target_field")
    @classmethod
    def validate_target_field(cls, v: str | None) -> str | None:
        return _check_target_field(v) if v is not None else v

    @field_validator("transformation")
    @classmethod
    def validate_transformation(cls, v: str | None) -> str | None:
        return _check_transformation(v) if v is not None else v


class FieldMappingReorderRequest(Schema):
    """New order of all mappings of an integration."""

    mapping_ids: list[str] = Field(..., min_length=1)


class DispatchRequest(Schema):
    """Schema for manually dispatching an application to an integration."""

    application_id: str = Field(..., min_length=1, max_length=64)


# =============================================================================
# Response Schemas
# =============================================================================


class IntegrationResponse(Schema):
    """Schema for an integration in responses. The API key is never returned."""

    id: str
    name: str
    description: str
    url: str
    method: str
    headers: dict[str, str]
    has_api_key: bool
    is_active: bool
    retry_attempts: int
    retry_delay_seconds: int
    timeout_seconds: int
    last_execution_status: str
    last_execution_at: datetime | None
    consecutive_failures: int
    created_at: datetime
    updated_at: datetime


class IntegrationListResponse(Schema):
    integrations: list[IntegrationResponse]


class FieldMappingResponse(Schema):
    id: str
    source_field: str
    target_field: str
    transformation: str
    default_value: str
    is_required: bool
    field_order: int
    created_at: datetime
    updated_at: datetime


class FieldMappingListResponse(Schema):
    mappings: list[FieldMappingResponse]


class ExecutionLogResponse(Schema):
    """Schema for one delivery attempt."""

    id: str
    delivery_id: str
    application_id: str
    request_url: str
    request_method: str
    request_headers: dict[str, str]
    request_body: Any = None
    response_status: int | None
    response_headers: dict[str, str] | None
    response_body: str | None
    status: str
    error_type: str
    error_message: str
    execution_time_ms: int | None
    retry_count: int
    created_at: datetime


class ExecutionLogListResponse(Schema):
    logs: list[ExecutionLogResponse]


class DeliverySummaryResponse(Schema):
    id: str
    application_id: str
    trigger: str
    is_test: bool
    status: str
    attempts_made: int
    max_attempts: int
    next_attempt_at: datetime | None
    last_error: str
    created_at: datetime
    completed_at: datetime | None


class DeliveryListResponse(Schema):
    deliveries: list[DeliverySummaryResponse]


class DeliveryResponse(DeliverySummaryResponse):
    """A logical delivery with its attempt history in creation order."""

    attempts: list[ExecutionLogResponse]


class IntegrationHealthResponse(Schema):
    integration_id: str
    is_active: bool
    last_execution_status: str
    last_execution_at: datetime | None
    consecutive_failures: int
    recent_success_count: int
    recent_failure_count: int
    pending_deliveries: int


class ResponseSummary(Schema):
    status_code: int | None
    headers: dict[str, str] | None
    body: str | None


class IntegrationTestResponse(Schema):
    """
    Result of a test invocation.

    error_type distinguishes configuration problems (validation_error)
    from delivery problems (timeout, connection_error, http_error).
    """

    success: bool
    outcome: str
    delivery_id: str
    sample_payload: dict[str, Any] | None
    response_summary: ResponseSummary | None
    error_type: str = ""
    error_message: str = ""
    execution_time_ms: int | None = None


class DispatchResponse(Schema):
    queued: bool
    delivery_id: str | None
    detail: str = ""


class SourceFieldResponse(Schema):
    path: str
    label: str
    kind: str


class SourceFieldListResponse(Schema):
    source_fields: list[SourceFieldResponse]


class TransformationResponse(Schema):
    name: str
    label: str


class TransformationListResponse(Schema):
    transformations: list[TransformationResponse]
