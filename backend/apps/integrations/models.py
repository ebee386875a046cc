"""
Integration models - outbound webhook destinations, their field mappings,
deliveries and the per-attempt execution log.
"""

import uuid
from datetime import timedelta
from typing import ClassVar

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator, URLValidator
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from apps.core.models import TenantScopedModel, TimestampedModel
from apps.core.url_validation import SSRFError, validate_destination_url

from .resolver import is_valid_source_path
from .transformers import Transformation

MAX_RETRY_ATTEMPTS = 5
MAX_RETRY_DELAY_SECONDS = 3600
MIN_TIMEOUT_SECONDS = 1
MAX_TIMEOUT_SECONDS = 300


def generate_integration_id() -> str:
    """Generate a prefixed integration ID."""
    return f"int_{uuid.uuid4().hex[:24]}"


def generate_mapping_id() -> str:
    """Generate a prefixed field mapping ID."""
    return f"map_{uuid.uuid4().hex[:24]}"


def generate_delivery_id() -> str:
    """Generate a prefixed delivery ID."""
    return f"dlv_{uuid.uuid4().hex[:24]}"


def generate_log_id() -> str:
    """Generate a prefixed execution log ID."""
    return f"exl_{uuid.uuid4().hex[:24]}"


def validate_integration_url(value: str) -> None:
    """Reject URLs that are not absolute http(s) or that target internal hosts."""
    try:
        validate_destination_url(
            value,
            allow_private=getattr(settings, "INTEGRATIONS_ALLOW_PRIVATE_URLS", False),
        )
    except SSRFError as e:
        raise ValidationError(str(e), code="invalid_url") from e


def validate_source_field(value: str) -> None:
    """Reject source paths that are not in the source field catalog."""
    if not is_valid_source_path(value):
        raise ValidationError(f"Unknown source field: {value!r}", code="invalid_source_field")


def validate_headers(value: object) -> None:
    """Custom headers must be a flat object of string names to string values."""
    if not isinstance(value, dict):
        raise ValidationError("Headers must be an object", code="invalid_headers")
    for name, header_value in value.items():
        if not isinstance(name, str) or not name.strip() or not isinstance(header_value, str):
            raise ValidationError(
                f"Header {name!r} must have a non-empty name and a string value",
                code="invalid_headers",
            )


class Integration(TenantScopedModel):
    """
    An operator-configured outbound webhook destination.

    Application events are delivered to every active integration of the
    organization; manual test invocations work regardless of is_active.
    """

    class Method(models.TextChoices):
        POST = "POST", "POST"
        PUT = "PUT", "PUT"
        PATCH = "PATCH", "PATCH"

    id = models.CharField(
        primary_key=True,
        max_length=32,
        default=generate_integration_id,
        editable=False,
    )

    created_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_integrations",
        help_text="User who created this integration",
    )

    # Destination
    name = models.CharField(
        max_length=100,
        help_text="Human-readable name for this integration",
    )
    description = models.TextField(
        blank=True,
        help_text="Optional description of the receiving system",
    )
    url = models.URLField(
        max_length=2048,
        validators=[URLValidator(schemes=["http", "https"]), validate_integration_url],
        help_text="Absolute http(s) URL that receives the payload",
    )
    method = models.CharField(
        max_length=10,
        choices=Method.choices,
        default=Method.POST,
    )
    api_key = models.CharField(
        max_length=255,
        blank=True,
        help_text="Optional secret sent as Bearer token and X-API-Key header",
    )
    headers = models.JSONField(
        default=dict,
        blank=True,
        validators=[validate_headers],
        help_text="Custom request headers (name -> value)",
    )

    # Status
    is_active = models.BooleanField(
        default=True,
        help_text="Whether application events are delivered to this integration",
    )

    # Delivery policy
    retry_attempts = models.PositiveSmallIntegerField(
        default=3,
        validators=[MaxValueValidator(MAX_RETRY_ATTEMPTS)],
        help_text="Extra attempts after a retryable failure (0-5)",
    )
    retry_delay_seconds = models.PositiveIntegerField(
        default=60,
        validators=[MaxValueValidator(MAX_RETRY_DELAY_SECONDS)],
        help_text="Delay between attempts in seconds (0-3600)",
    )
    timeout_seconds = models.PositiveSmallIntegerField(
        default=30,
        validators=[MinValueValidator(MIN_TIMEOUT_SECONDS), MaxValueValidator(MAX_TIMEOUT_SECONDS)],
        help_text="Request timeout in seconds (1-300)",
    )

    # Health tracking (denormalized for quick access)
    last_execution_status = models.CharField(
        max_length=20,
        blank=True,
        help_text="Status of most recent attempt: success, failed, retrying",
    )
    last_execution_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp of most recent attempt",
    )
    consecutive_failures = models.PositiveIntegerField(
        default=0,
        help_text="Number of consecutive failed attempts (resets on success)",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["organization", "is_active"], name="integration_org_active_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.url})"

    def record_execution_success(self) -> None:
        """Update health after a successful attempt."""
        now = timezone.now()
        Integration.objects.filter(pk=self.pk).update(
            last_execution_status=ExecutionLog.Status.SUCCESS,
            last_execution_at=now,
            consecutive_failures=0,
        )
        self.last_execution_status = ExecutionLog.Status.SUCCESS
        self.last_execution_at = now
        self.consecutive_failures = 0

    def record_execution_failure(self, status: str) -> None:
        """Update health after a failed or retrying attempt."""
        now = timezone.now()
        Integration.objects.filter(pk=self.pk).update(
            last_execution_status=status,
            last_execution_at=now,
            consecutive_failures=F("consecutive_failures") + 1,
        )
        self.refresh_from_db(
            fields=["last_execution_status", "last_execution_at", "consecutive_failures"]
        )


class FieldMapping(TimestampedModel):
    """
    One row of an integration's payload mapping table.

    Mappings are applied in ascending field_order; when several mappings
    write the same target key, the last one applied wins.
    """

    id = models.CharField(
        primary_key=True,
        max_length=32,
        default=generate_mapping_id,
        editable=False,
    )

    integration = models.ForeignKey(
        Integration,
        on_delete=models.CASCADE,
        related_name="field_mappings",
    )

    source_field = models.CharField(
        max_length=100,
        validators=[validate_source_field],
        help_text="Source path (e.g. 'amount', 'profiles.email') or 'static'",
    )
    target_field = models.CharField(
        max_length=255,
        help_text="Destination JSON key; dots create nested objects",
    )
    transformation = models.CharField(
        max_length=30,
        choices=Transformation.choices,
        default=Transformation.NONE,
    )
    default_value = models.CharField(
        max_length=1000,
        blank=True,
        help_text="Used when the source has no value (and verbatim for 'static')",
    )
    is_required = models.BooleanField(
        default=False,
        help_text="Abort the delivery when this field ends up without a value",
    )
    field_order = models.IntegerField(
        default=0,
        help_text="Evaluation and display order (ascending)",
    )

    class Meta:
        ordering = ["field_order", "created_at"]
        indexes = [
            models.Index(fields=["integration", "field_order"], name="mapping_integration_order_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.source_field} → {self.target_field}"


class Delivery(TimestampedModel):
    """
    One logical delivery of a payload to an integration.

    A delivery spans one or more attempts; each attempt appends an
    ExecutionLog row. next_attempt_at persists the retry schedule so
    retries survive process restarts.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        RETRYING = "retrying", "Retrying"
        SUCCESS = "success", "Success"
        FAILED = "failed", "Failed"
        CANCELLED = "cancelled", "Cancelled"

    class Trigger(models.TextChoices):
        APPLICATION_SUBMITTED = "application.submitted", "Application submitted"
        APPLICATION_STATUS_CHANGED = "application.status_changed", "Application status changed"
        MANUAL = "manual", "Manual dispatch"
        TEST = "test", "Test invocation"

    TERMINAL_STATUSES: ClassVar[frozenset[str]] = frozenset(
        {Status.SUCCESS, Status.FAILED, Status.CANCELLED}
    )

    # Grace period added to the request timeout before a claim is considered abandoned
    CLAIM_GRACE_SECONDS: ClassVar[int] = 30

    id = models.CharField(
        primary_key=True,
        max_length=32,
        default=generate_delivery_id,
        editable=False,
    )

    integration = models.ForeignKey(
        Integration,
        on_delete=models.CASCADE,
        related_name="deliveries",
    )
    application_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text="Source application (empty for test invocations)",
    )
    trigger = models.CharField(
        max_length=40,
        choices=Trigger.choices,
        default=Trigger.MANUAL,
    )
    is_test = models.BooleanField(default=False)

    payload = models.JSONField(
        null=True,
        blank=True,
        help_text="Compiled payload, resent unchanged on retries",
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    attempts_made = models.PositiveSmallIntegerField(default=0)
    max_attempts = models.PositiveSmallIntegerField(
        default=1,
        help_text="Attempt budget fixed when the delivery was created",
    )
    next_attempt_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the next attempt is due (null when terminal)",
    )
    claimed_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Lease held by the worker running an attempt",
    )
    last_error = models.TextField(blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "deliveries"
        indexes = [
            models.Index(fields=["status", "next_attempt_at"], name="delivery_due_idx"),
            models.Index(fields=["integration", "created_at"], name="delivery_integration_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.id} → {self.integration_id} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    @property
    def retries_remaining(self) -> int:
        return max(self.max_attempts - self.attempts_made, 0)

    def claim(self, lease_seconds: int) -> bool:
        """
        Take the in-flight lease for this delivery.

        The conditional UPDATE succeeds for at most one worker, so attempts
        of one delivery never overlap. An expired lease (crashed worker)
        can be taken over.
        """
        now = timezone.now()
        lease_until = now + timedelta(seconds=lease_seconds + self.CLAIM_GRACE_SECONDS)
        claimed = (
            Delivery.objects.filter(
                pk=self.pk,
                status__in=[self.Status.PENDING, self.Status.RETRYING],
            )
            .filter(models.Q(claimed_until__isnull=True) | models.Q(claimed_until__lt=now))
            .update(claimed_until=lease_until)
        )
        if claimed:
            self.claimed_until = lease_until
        return bool(claimed)

    def release(self) -> None:
        """Give up the in-flight lease."""
        Delivery.objects.filter(pk=self.pk).update(claimed_until=None)
        self.claimed_until = None

    def schedule_retry(self, delay_seconds: int, error: str) -> None:
        """Persist the next attempt time after a retryable failure."""
        self.status = self.Status.RETRYING
        self.next_attempt_at = timezone.now() + timedelta(seconds=delay_seconds)
        self.last_error = error
        self.save(update_fields=["status", "next_attempt_at", "last_error", "attempts_made", "updated_at"])

    def finish(self, status: str, error: str = "") -> None:
        """Move the delivery to a terminal status."""
        self.status = status
        self.next_attempt_at = None
        self.last_error = error
        self.completed_at = timezone.now()
        self.save(
            update_fields=[
                "status",
                "next_attempt_at",
                "last_error",
                "completed_at",
                "attempts_made",
                "updated_at",
            ]
        )


class ExecutionLog(models.Model):
    """
    Immutable record of one HTTP attempt (or of a delivery that failed
    before any request could be made).

    Created as pending when the attempt starts and completed exactly once
    with the outcome. Entries are never deleted by the application.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SUCCESS = "success", "Success"
        FAILED = "failed", "Failed"
        RETRYING = "retrying", "Retrying"

    class ErrorType(models.TextChoices):
        NONE = "", "None"
        VALIDATION_ERROR = "validation_error", "Validation Error"
        RECORD_NOT_FOUND = "record_not_found", "Record Not Found"
        TIMEOUT = "timeout", "Timeout"
        CONNECTION_ERROR = "connection_error", "Connection Error"
        HTTP_ERROR = "http_error", "HTTP Error"

    TERMINAL_STATUSES: ClassVar[frozenset[str]] = frozenset({Status.SUCCESS, Status.FAILED})

    id = models.CharField(
        primary_key=True,
        max_length=32,
        default=generate_log_id,
        editable=False,
    )

    integration = models.ForeignKey(
        Integration,
        on_delete=models.CASCADE,
        related_name="execution_logs",
    )
    delivery = models.ForeignKey(
        Delivery,
        on_delete=models.CASCADE,
        related_name="attempts",
    )
    application_id = models.CharField(max_length=64, blank=True)

    # Request as sent (secret headers masked)
    request_url = models.URLField(max_length=2048)
    request_method = models.CharField(max_length=10)
    request_headers = models.JSONField(default=dict, blank=True)
    request_body = models.JSONField(null=True, blank=True)

    # Response (null when no response was received)
    response_status = models.PositiveSmallIntegerField(null=True, blank=True)
    response_headers = models.JSONField(null=True, blank=True)
    response_body = models.TextField(null=True, blank=True)

    # Outcome
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    error_type = models.CharField(
        max_length=30,
        choices=ErrorType.choices,
        default=ErrorType.NONE,
        blank=True,
    )
    error_message = models.TextField(blank=True)
    execution_time_ms = models.PositiveIntegerField(null=True, blank=True)
    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of retries consumed before this attempt",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-retry_count"]
        indexes = [
            models.Index(fields=["integration", "created_at"], name="execlog_integration_idx"),
            models.Index(fields=["delivery", "retry_count"], name="execlog_delivery_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.request_method} {self.request_url} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def complete(
        self,
        status: str,
        *,
        response_status: int | None = None,
        response_headers: dict | None = None,
        response_body: str | None = None,
        error_type: str = "",
        error_message: str = "",
        execution_time_ms: int | None = None,
    ) -> None:
        """
        Record the outcome of this attempt.

        Only a pending entry can be completed; the conditional UPDATE makes
        the transition atomic and keeps terminal entries immutable.

        Raises:
            ValueError: If the entry already has an outcome
        """
        fields = {
            "status": status,
            "response_status": response_status,
            "response_headers": response_headers,
            "response_body": response_body,
            "error_type": error_type,
            "error_message": error_message,
            "execution_time_ms": execution_time_ms,
        }
        with transaction.atomic():
            updated = ExecutionLog.objects.filter(pk=self.pk, status=self.Status.PENDING).update(
                **fields
            )
        if not updated:
            raise ValueError(f"Execution log {self.pk} already has an outcome")
        for name, value in fields.items():
            setattr(self, name, value)
