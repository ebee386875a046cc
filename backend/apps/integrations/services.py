"""
Integration service layer - integration registry, dispatch and test invocation.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Max, Q
from django.utils import timezone

from apps.core.logging import bind_contextvars, get_logger, unbind_contextvars
from apps.organizations.models import Organization

from .compiler import compile_payload
from .dispatcher import Dispatcher
from .exceptions import (
    ApplicationNotFoundError,
    ConfigurationError,
    InvalidSourcePathError,
    MappingValidationError,
)
from .executor import run_deliveries, submit_delivery
from .models import Delivery, ExecutionLog, FieldMapping, Integration
from .records import get_application_record
from .sample import build_sample_record
from .schemas import (
    FieldMappingCreate,
    FieldMappingUpdate,
    IntegrationCreate,
    IntegrationUpdate,
)

logger = get_logger(__name__)

MAX_LOG_LIMIT = 200
HEALTH_WINDOW = 50
CANCELLED_MESSAGE = "Integration disabled; remaining retries cancelled"

INTEGRATION_FIELDS = (
    "name",
    "description",
    "url",
    "api_key",
    "method",
    "headers",
    "is_active",
    "retry_attempts",
    "retry_delay_seconds",
    "timeout_seconds",
)
MAPPING_FIELDS = (
    "source_field",
    "target_field",
    "transformation",
    "default_value",
    "is_required",
    "field_order",
)


@dataclass
class IntegrationHealth:
    """Health summary of an integration."""

    integration_id: str
    is_active: bool
    last_execution_status: str
    last_execution_at: datetime | None
    consecutive_failures: int
    recent_success_count: int
    recent_failure_count: int
    pending_deliveries: int


@dataclass
class TestResult:
    """
    Result of a test invocation.

    ``error_type`` is ``validation_error`` when the mappings could not be
    compiled against the sample record; delivery failures carry the
    dispatcher's classification instead.
    """

    success: bool
    outcome: str
    delivery_id: str
    log_id: str
    sample_payload: dict[str, Any] | None
    response_summary: dict[str, Any] | None
    error_type: str = ""
    error_message: str = ""
    execution_time_ms: int | None = None


def _full_clean(instance: Integration | FieldMapping) -> None:
    """Run model validation, reporting the first problem as a ConfigurationError."""
    try:
        instance.full_clean()
    except ValidationError as e:
        field_name, messages = next(iter(e.message_dict.items()))
        if field_name == "source_field":
            raise InvalidSourcePathError(instance.source_field) from e
        raise ConfigurationError(messages[0], field=field_name) from e


class IntegrationService:
    """Service for managing an organization's integrations."""

    def __init__(self, organization: Organization):
        self.organization = organization

    # =========================================================================
    # Integrations
    # =========================================================================

    def list_integrations(self) -> list[Integration]:
        """List all integrations for the organization."""
        return list(
            Integration.objects.filter(organization=self.organization).order_by("-created_at")
        )

    def get_integration(self, integration_id: str) -> Integration | None:
        """Get a specific integration."""
        return Integration.objects.filter(
            id=integration_id,
            organization=self.organization,
        ).first()

    def create_integration(
        self,
        data: IntegrationCreate,
        created_by_id: int | None = None,
    ) -> Integration:
        """
        Create a new integration.

        Raises:
            ConfigurationError: If the URL or delivery policy is invalid
        """
        integration = Integration(
            organization=self.organization,
            created_by_id=created_by_id,
            **{name: getattr(data, name) for name in INTEGRATION_FIELDS},
        )
        _full_clean(integration)
        integration.save()

        logger.info(
            "integration_created",
            integration_id=integration.id,
            organization_id=self.organization.id,
            url=integration.url,
        )
        return integration

    def update_integration(
        self,
        integration_id: str,
        data: IntegrationUpdate,
    ) -> Integration | None:
        """
        Update an integration. Only provided fields change.

        Raises:
            ConfigurationError: If the result would be invalid
        """
        integration = self.get_integration(integration_id)
        if not integration:
            return None

        for name in INTEGRATION_FIELDS:
            value = getattr(data, name)
            if value is not None:
                setattr(integration, name, value)

        _full_clean(integration)
        integration.save()

        logger.info("integration_updated", integration_id=integration.id)
        return integration

    def delete_integration(self, integration_id: str) -> bool:
        """Delete an integration together with its mappings and history."""
        integration = self.get_integration(integration_id)
        if not integration:
            return False
        integration.delete()
        logger.info("integration_deleted", integration_id=integration_id)
        return True

    def set_active(self, integration_id: str, active: bool) -> Integration | None:
        """
        Enable or disable an integration.

        Disabling takes effect for pending retries too: they are cancelled
        before their next attempt.
        """
        integration = self.get_integration(integration_id)
        if not integration:
            return None

        integration.is_active = active
        integration.save(update_fields=["is_active", "updated_at"])

        logger.info(
            "integration_enabled" if active else "integration_disabled",
            integration_id=integration.id,
        )
        return integration

    # =========================================================================
    # Field mappings
    # =========================================================================

    def list_mappings(self, integration_id: str) -> list[FieldMapping] | None:
        """List an integration's mappings in evaluation order."""
        integration = self.get_integration(integration_id)
        if not integration:
            return None
        return list(integration.field_mappings.order_by("field_order", "created_at"))

    def get_mapping(self, integration_id: str, mapping_id: str) -> FieldMapping | None:
        return FieldMapping.objects.filter(
            id=mapping_id,
            integration_id=integration_id,
            integration__organization=self.organization,
        ).first()

    def create_mapping(
        self,
        integration_id: str,
        data: FieldMappingCreate,
    ) -> FieldMapping | None:
        """
        Add a mapping; without an explicit field_order it goes last.

        Raises:
            InvalidSourcePathError: If the source path is not in the catalog
            ConfigurationError: If any other field is invalid
        """
        integration = self.get_integration(integration_id)
        if not integration:
            return None

        values = {name: getattr(data, name) for name in MAPPING_FIELDS}
        if values["field_order"] is None:
            current_max = integration.field_mappings.aggregate(m=Max("field_order"))["m"]
            values["field_order"] = 0 if current_max is None else current_max + 1

        mapping = FieldMapping(integration=integration, **values)
        _full_clean(mapping)
        mapping.save()

        logger.info(
            "integration_mapping_created",
            integration_id=integration.id,
            mapping_id=mapping.id,
            source_field=mapping.source_field,
            target_field=mapping.target_field,
        )
        return mapping

    def update_mapping(
        self,
        integration_id: str,
        mapping_id: str,
        data: FieldMappingUpdate,
    ) -> FieldMapping | None:
        """Update a mapping. Only provided fields change."""
        mapping = self.get_mapping(integration_id, mapping_id)
        if not mapping:
            return None

        for name in MAPPING_FIELDS:
            value = getattr(data, name)
            if value is not None:
                setattr(mapping, name, value)

        _full_clean(mapping)
        mapping.save()
        return mapping

    def delete_mapping(self, integration_id: str, mapping_id: str) -> bool:
        mapping = self.get_mapping(integration_id, mapping_id)
        if not mapping:
            return False
        mapping.delete()
        return True

    def reorder_mappings(
        self,
        integration_id: str,
        mapping_ids: list[str],
    ) -> list[FieldMapping] | None:
        """
        Renumber an integration's mappings in the given order.

        Raises:
            ConfigurationError: If mapping_ids is not exactly the
                integration's current mapping IDs
        """
        integration = self.get_integration(integration_id)
        if not integration:
            return None

        with transaction.atomic():
            mappings = {m.id: m for m in integration.field_mappings.select_for_update()}
            if len(mapping_ids) != len(set(mapping_ids)) or set(mapping_ids) != set(mappings):
                raise ConfigurationError(
                    "mapping_ids must list every mapping of the integration exactly once",
                    field="mapping_ids",
                )

            ordered = []
            for position, mapping_id in enumerate(mapping_ids):
                mapping = mappings[mapping_id]
                mapping.field_order = position
                ordered.append(mapping)
            FieldMapping.objects.bulk_update(ordered, ["field_order"])

        return ordered

    # =========================================================================
    # Execution history
    # =========================================================================

    def list_logs(self, integration_id: str, limit: int = 50) -> list[ExecutionLog]:
        """List execution log entries for an integration, newest first."""
        limit = max(1, min(limit, MAX_LOG_LIMIT))
        return list(
            ExecutionLog.objects.filter(
                integration_id=integration_id,
                integration__organization=self.organization,
            ).order_by("-created_at", "-retry_count")[:limit]
        )

    def list_deliveries(self, integration_id: str, limit: int = 50) -> list[Delivery]:
        """List deliveries for an integration, newest first."""
        limit = max(1, min(limit, MAX_LOG_LIMIT))
        return list(
            Delivery.objects.filter(
                integration_id=integration_id,
                integration__organization=self.organization,
            ).order_by("-created_at")[:limit]
        )

    def get_delivery(self, integration_id: str, delivery_id: str) -> Delivery | None:
        return Delivery.objects.filter(
            id=delivery_id,
            integration_id=integration_id,
            integration__organization=self.organization,
        ).first()

    def list_attempts(self, delivery: Delivery) -> list[ExecutionLog]:
        """The attempt chain of a delivery, first attempt first."""
        return list(delivery.attempts.order_by("retry_count", "created_at"))

    def get_health(self, integration_id: str) -> IntegrationHealth | None:
        """Summarize recent delivery health of an integration."""
        integration = self.get_integration(integration_id)
        if not integration:
            return None

        recent = list(
            integration.execution_logs.exclude(status=ExecutionLog.Status.PENDING)
            .order_by("-created_at")
            .values_list("status", flat=True)[:HEALTH_WINDOW]
        )
        pending = integration.deliveries.filter(
            status__in=[Delivery.Status.PENDING, Delivery.Status.RETRYING]
        ).count()

        return IntegrationHealth(
            integration_id=integration.id,
            is_active=integration.is_active,
            last_execution_status=integration.last_execution_status,
            last_execution_at=integration.last_execution_at,
            consecutive_failures=integration.consecutive_failures,
            recent_success_count=sum(1 for s in recent if s == ExecutionLog.Status.SUCCESS),
            recent_failure_count=sum(1 for s in recent if s != ExecutionLog.Status.SUCCESS),
            pending_deliveries=pending,
        )


# =============================================================================
# Dispatch
# =============================================================================


def get_active_integrations(organization_id: int) -> list[Integration]:
    """Get all active integrations of an organization."""
    return list(
        Integration.objects.filter(organization_id=organization_id, is_active=True).order_by(
            "created_at"
        )
    )


def dispatch(
    integration_id: str,
    application_id: str,
    trigger: str = Delivery.Trigger.MANUAL,
) -> Delivery | None:
    """
    Queue delivery of an application to one integration.

    Fire-and-continue: returns as soon as the delivery is queued. Disabled
    or unknown integrations are skipped and return None.
    """
    integration = Integration.objects.filter(pk=integration_id).first()
    if integration is None:
        logger.warning("integration_dispatch_unknown", integration_id=integration_id)
        return None
    if not integration.is_active:
        logger.info(
            "integration_dispatch_skipped",
            integration_id=integration.id,
            application_id=application_id,
            reason="inactive",
        )
        return None

    delivery = Delivery.objects.create(
        integration=integration,
        application_id=str(application_id),
        trigger=trigger,
        max_attempts=integration.retry_attempts + 1,
        next_attempt_at=timezone.now(),
    )
    logger.info(
        "integration_delivery_queued",
        integration_id=integration.id,
        delivery_id=delivery.id,
        application_id=delivery.application_id,
        trigger=trigger,
    )
    submit_delivery(delivery.id)
    return delivery


def dispatch_application_event(
    organization_id: int,
    application_id: str,
    event: str,
) -> list[Delivery]:
    """
    Deliver an application event to every active integration of the organization.

    Each integration gets its own delivery; one failing or slow integration
    does not affect the others.

    Raises:
        ValueError: If event is not an application event
    """
    trigger = Delivery.Trigger(event)
    if trigger not in (
        Delivery.Trigger.APPLICATION_SUBMITTED,
        Delivery.Trigger.APPLICATION_STATUS_CHANGED,
    ):
        raise ValueError(f"Not an application event: {event}")

    deliveries = []
    for integration in get_active_integrations(organization_id):
        delivery = dispatch(integration.id, application_id, trigger=trigger)
        if delivery is not None:
            deliveries.append(delivery)
    return deliveries


def _compile_delivery(delivery: Delivery, dispatcher: Dispatcher) -> bool:
    """
    Compile and store the payload of a delivery on its first run.

    Returns False when the delivery was failed instead.
    """
    integration = delivery.integration
    try:
        record = get_application_record(delivery.application_id)
        payload = compile_payload(record, integration.field_mappings.all())
    except ApplicationNotFoundError as e:
        dispatcher.record_failure(delivery, ExecutionLog.ErrorType.RECORD_NOT_FOUND, str(e))
        return False
    except (MappingValidationError, ConfigurationError) as e:
        dispatcher.record_failure(delivery, ExecutionLog.ErrorType.VALIDATION_ERROR, str(e))
        return False

    delivery.payload = payload
    delivery.save(update_fields=["payload", "updated_at"])
    return True


def run_delivery(delivery_id: str, dispatcher: Dispatcher | None = None) -> Delivery | None:
    """
    Run the due attempts of one delivery.

    Attempts continue while the delivery is due: a retry with zero delay
    runs immediately, a positive delay stops here and leaves the delivery
    for process_due_deliveries. Only one worker runs a given delivery at
    a time.
    """
    delivery = Delivery.objects.select_related("integration").filter(pk=delivery_id).first()
    if delivery is None:
        logger.warning("integration_delivery_missing", delivery_id=delivery_id)
        return None
    if delivery.is_terminal:
        return delivery

    integration = delivery.integration
    if not delivery.claim(integration.timeout_seconds * max(delivery.retries_remaining, 1)):
        logger.debug("integration_delivery_claimed_elsewhere", delivery_id=delivery.id)
        return delivery
    delivery.refresh_from_db(fields=["status", "attempts_made", "next_attempt_at", "payload"])

    dispatcher = dispatcher or Dispatcher()
    bind_contextvars(**{"integration.id": integration.id, "delivery.id": delivery.id})
    try:
        while not delivery.is_terminal:
            if delivery.next_attempt_at and delivery.next_attempt_at > timezone.now():
                break

            if delivery.attempts_made > 0 and not delivery.is_test:
                integration.refresh_from_db(fields=["is_active"])
                if not integration.is_active:
                    delivery.finish(Delivery.Status.CANCELLED, CANCELLED_MESSAGE)
                    logger.info(
                        "integration_delivery_cancelled",
                        integration_id=integration.id,
                        delivery_id=delivery.id,
                        attempts_made=delivery.attempts_made,
                    )
                    break

            if delivery.payload is None and not _compile_delivery(delivery, dispatcher):
                break

            dispatcher.attempt(delivery)
    finally:
        delivery.release()
        unbind_contextvars("integration.id", "delivery.id")

    return delivery


def process_due_deliveries(limit: int = 100, now: datetime | None = None) -> int:
    """
    Run every delivery whose next attempt is due.

    Deliveries held by a live worker lease are skipped.

    Returns:
        Number of deliveries processed
    """
    now = now or timezone.now()
    delivery_ids = list(
        Delivery.objects.filter(
            status__in=[Delivery.Status.PENDING, Delivery.Status.RETRYING],
            next_attempt_at__lte=now,
        )
        .filter(Q(claimed_until__isnull=True) | Q(claimed_until__lt=now))
        .order_by("next_attempt_at")
        .values_list("id", flat=True)[:limit]
    )
    if not delivery_ids:
        return 0

    logger.info("integration_deliveries_due", count=len(delivery_ids))
    return run_deliveries(delivery_ids)


# =============================================================================
# Test invocation
# =============================================================================


def _response_summary(log_entry: ExecutionLog) -> dict[str, Any] | None:
    if log_entry.response_status is None:
        return None
    return {
        "status_code": log_entry.response_status,
        "headers": log_entry.response_headers,
        "body": log_entry.response_body,
    }


def test_integration(
    integration: Integration,
    dispatcher: Dispatcher | None = None,
    today: date | None = None,
) -> TestResult:
    """
    Send a sample payload to an integration once and report the result.

    Runs synchronously and regardless of is_active. The attempt goes
    through the regular delivery pipeline and is logged like any other,
    but does not count toward the integration's health (last execution
    status and consecutive failures).
    """
    dispatcher = dispatcher or Dispatcher()
    delivery = Delivery(
        integration=integration,
        trigger=Delivery.Trigger.TEST,
        is_test=True,
        max_attempts=1,
    )

    try:
        payload = compile_payload(build_sample_record(), integration.field_mappings.all(), today)
    except (MappingValidationError, ConfigurationError) as e:
        delivery.save()
        log_entry = dispatcher.record_failure(
            delivery, ExecutionLog.ErrorType.VALIDATION_ERROR, str(e)
        )
        return TestResult(
            success=False,
            outcome=log_entry.status,
            delivery_id=delivery.id,
            log_id=log_entry.id,
            sample_payload=None,
            response_summary=None,
            error_type=log_entry.error_type,
            error_message=log_entry.error_message,
            execution_time_ms=log_entry.execution_time_ms,
        )

    delivery.payload = payload
    delivery.save()
    log_entry = dispatcher.attempt(delivery)

    logger.info(
        "integration_test_completed",
        integration_id=integration.id,
        delivery_id=delivery.id,
        status=log_entry.status,
    )
    return TestResult(
        success=log_entry.status == ExecutionLog.Status.SUCCESS,
        outcome=log_entry.status,
        delivery_id=delivery.id,
        log_id=log_entry.id,
        sample_payload=payload,
        response_summary=_response_summary(log_entry),
        error_type=log_entry.error_type,
        error_message=log_entry.error_message,
        execution_time_ms=log_entry.execution_time_ms,
    )
