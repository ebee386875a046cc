"""
Integration API endpoints.

Allows organization admins to configure outbound integrations, their field
mappings, and to inspect and trigger deliveries.
"""

from ninja import Router
from ninja.errors import HttpError

from apps.core.schemas import ErrorResponse
from apps.core.security import BearerAuth, require_admin
from apps.core.throttling import RateLimit, RateLimitExceeded
from apps.core.types import AuthenticatedHttpRequest

from . import services
from .exceptions import ConfigurationError
from .models import Delivery, ExecutionLog, FieldMapping, Integration
from .resolver import get_source_field_catalog
from .schemas import (
    DeliveryListResponse,
    DeliveryResponse,
    DeliverySummaryResponse,
    DispatchRequest,
    DispatchResponse,
    ExecutionLogListResponse,
    ExecutionLogResponse,
    FieldMappingCreate,
    FieldMappingListResponse,
    FieldMappingReorderRequest,
    FieldMappingResponse,
    FieldMappingUpdate,
    IntegrationCreate,
    IntegrationHealthResponse,
    IntegrationListResponse,
    IntegrationResponse,
    IntegrationTestResponse,
    IntegrationUpdate,
    ResponseSummary,
    SourceFieldListResponse,
    SourceFieldResponse,
    TransformationListResponse,
    TransformationResponse,
)
from .services import IntegrationService
from .transformers import get_transformation_catalog

router = Router(tags=["integrations"])
bearer_auth = BearerAuth()

# Test invocations reach external systems; limit per integration
TEST_SENDS = RateLimit("integration_test", max_requests=10, window_seconds=60)


# =============================================================================
# Helpers
# =============================================================================


def _service(request: AuthenticatedHttpRequest) -> IntegrationService:
    return IntegrationService(request.auth.organization)


def _get_integration_or_404(service: IntegrationService, integration_id: str) -> Integration:
    integration = service.get_integration(integration_id)
    if not integration:
        raise HttpError(404, "Integration not found")
    return integration


def _integration_to_response(integration: Integration) -> IntegrationResponse:
    """Convert an Integration model to response schema."""
    return IntegrationResponse(
        id=integration.id,
        name=integration.name,
        description=integration.description,
        url=integration.url,
        method=integration.method,
        headers=integration.headers or {},
        has_api_key=bool(integration.api_key),
        is_active=integration.is_active,
        retry_attempts=integration.retry_attempts,
        retry_delay_seconds=integration.retry_delay_seconds,
        timeout_seconds=integration.timeout_seconds,
        last_execution_status=integration.last_execution_status,
        last_execution_at=integration.last_execution_at,
        consecutive_failures=integration.consecutive_failures,
        created_at=integration.created_at,
        updated_at=integration.updated_at,
    )


def _mapping_to_response(mapping: FieldMapping) -> FieldMappingResponse:
    """Convert a FieldMapping model to response schema."""
    return FieldMappingResponse(
        id=mapping.id,
        source_field=mapping.source_field,
        target_field=mapping.target_field,
        transformation=mapping.transformation,
        default_value=mapping.default_value,
        is_required=mapping.is_required,
        field_order=mapping.field_order,
        created_at=mapping.created_at,
        updated_at=mapping.updated_at,
    )


def _log_to_response(log_entry: ExecutionLog) -> ExecutionLogResponse:
    """Convert an ExecutionLog model to response schema."""
    return ExecutionLogResponse(
        id=log_entry.id,
        delivery_id=log_entry.delivery_id,
        application_id=log_entry.application_id,
        request_url=log_entry.request_url,
        request_method=log_entry.request_method,
        request_headers=log_entry.request_headers or {},
        request_body=log_entry.request_body,
        response_status=log_entry.response_status,
        response_headers=log_entry.response_headers,
        response_body=log_entry.response_body,
        status=log_entry.status,
        error_type=log_entry.error_type,
        error_message=log_entry.error_message,
        execution_time_ms=log_entry.execution_time_ms,
        retry_count=log_entry.retry_count,
        created_at=log_entry.created_at,
    )


def _delivery_fields(delivery: Delivery) -> dict:
    return {
        "id": delivery.id,
        "application_id": delivery.application_id,
        "trigger": delivery.trigger,
        "is_test": delivery.is_test,
        "status": delivery.status,
        "attempts_made": delivery.attempts_made,
        "max_attempts": delivery.max_attempts,
        "next_attempt_at": delivery.next_attempt_at,
        "last_error": delivery.last_error,
        "created_at": delivery.created_at,
        "completed_at": delivery.completed_at,
    }


# =============================================================================
# Catalogs
# =============================================================================


@router.get(
    "/catalog/source-fields",
    response={200: SourceFieldListResponse},
    auth=bearer_auth,
    operation_id="listIntegrationSourceFields",
    summary="List mappable source fields",
)
@require_admin
def list_source_fields(request: AuthenticatedHttpRequest) -> SourceFieldListResponse:
    """
    Get the catalog of application and profile fields a mapping can read.

    'static' means the mapping's default value is sent verbatim.
    """
    return SourceFieldListResponse(
        source_fields=[SourceFieldResponse(**f) for f in get_source_field_catalog()]
    )


@router.get(
    "/catalog/transformations",
    response={200: TransformationListResponse},
    auth=bearer_auth,
    operation_id="listIntegrationTransformations",
    summary="List value transformations",
)
@require_admin
def list_transformations(request: AuthenticatedHttpRequest) -> TransformationListResponse:
    """Get the catalog of transformations a mapping can apply."""
    return TransformationListResponse(
        transformations=[TransformationResponse(**t) for t in get_transformation_catalog()]
    )


# =============================================================================
# Integration Management (admin only)
# =============================================================================


@router.get(
    "/",
    response={200: IntegrationListResponse},
    auth=bearer_auth,
    operation_id="listIntegrations",
    summary="List integrations",
)
@require_admin
def list_integrations(request: AuthenticatedHttpRequest) -> IntegrationListResponse:
    """
    List all integrations for the organization.

    Requires admin role.
    """
    integrations = _service(request).list_integrations()
    return IntegrationListResponse(
        integrations=[_integration_to_response(i) for i in integrations]
    )


@router.post(
    "/",
    response={201: IntegrationResponse, 400: ErrorResponse},
    auth=bearer_auth,
    operation_id="createIntegration",
    summary="Create integration",
)
@require_admin
def create_integration(
    request: AuthenticatedHttpRequest,
    payload: IntegrationCreate,
) -> tuple[int, IntegrationResponse]:
    """
    Create a new integration.

    The API key is stored but never returned; responses only show whether
    one is set.

    Requires admin role.
    """
    try:
        integration = _service(request).create_integration(
            data=payload,
            created_by_id=request.auth.user.id if request.auth.user else None,
        )
    except ConfigurationError as e:
        raise HttpError(400, str(e)) from e

    return 201, _integration_to_response(integration)


@router.get(
    "/{integration_id}",
    response={200: IntegrationResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="getIntegration",
    summary="Get integration",
)
@require_admin
def get_integration(request: AuthenticatedHttpRequest, integration_id: str) -> IntegrationResponse:
    """
    Get a specific integration.

    Requires admin role.
    """
    integration = _get_integration_or_404(_service(request), integration_id)
    return _integration_to_response(integration)


@router.patch(
    "/{integration_id}",
    response={200: IntegrationResponse, 400: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="updateIntegration",
    summary="Update integration",
)
@require_admin
def update_integration(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    payload: IntegrationUpdate,
) -> IntegrationResponse:
    """
    Update an integration.

    Only provided fields are updated. Send an empty api_key to clear it.

    Requires admin role.
    """
    try:
        integration = _service(request).update_integration(integration_id, payload)
    except ConfigurationError as e:
        raise HttpError(400, str(e)) from e

    if not integration:
        raise HttpError(404, "Integration not found")

    return _integration_to_response(integration)


@router.delete(
    "/{integration_id}",
    response={204: None, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="deleteIntegration",
    summary="Delete integration",
)
@require_admin
def delete_integration(request: AuthenticatedHttpRequest, integration_id: str) -> tuple[int, None]:
    """
    Delete an integration with its mappings and execution history.

    Requires admin role.
    """
    if not _service(request).delete_integration(integration_id):
        raise HttpError(404, "Integration not found")

    return 204, None


@router.post(
    "/{integration_id}/enable",
    response={200: IntegrationResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="enableIntegration",
    summary="Enable integration",
)
@require_admin
def enable_integration(request: AuthenticatedHttpRequest, integration_id: str) -> IntegrationResponse:
    """Start delivering application events to this integration."""
    integration = _service(request).set_active(integration_id, True)
    if not integration:
        raise HttpError(404, "Integration not found")
    return _integration_to_response(integration)


@router.post(
    "/{integration_id}/disable",
    response={200: IntegrationResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="disableIntegration",
    summary="Disable integration",
)
@require_admin
def disable_integration(
    request: AuthenticatedHttpRequest, integration_id: str
) -> IntegrationResponse:
    """
    Stop delivering application events to this integration.

    Deliveries waiting for a retry are cancelled before their next attempt.
    """
    integration = _service(request).set_active(integration_id, False)
    if not integration:
        raise HttpError(404, "Integration not found")
    return _integration_to_response(integration)


# =============================================================================
# Field Mappings
# =============================================================================


@router.get(
    "/{integration_id}/mappings",
    response={200: FieldMappingListResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="listIntegrationMappings",
    summary="List field mappings",
)
@require_admin
def list_mappings(request: AuthenticatedHttpRequest, integration_id: str) -> FieldMappingListResponse:
    """List an integration's field mappings in evaluation order."""
    mappings = _service(request).list_mappings(integration_id)
    if mappings is None:
        raise HttpError(404, "Integration not found")
    return FieldMappingListResponse(mappings=[_mapping_to_response(m) for m in mappings])


@router.post(
    "/{integration_id}/mappings",
    response={201: FieldMappingResponse, 400: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="createIntegrationMapping",
    summary="Add field mapping",
)
@require_admin
def create_mapping(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    payload: FieldMappingCreate,
) -> tuple[int, FieldMappingResponse]:
    """
    Add a field mapping.

    Without field_order the mapping is appended after the existing ones.
    """
    try:
        mapping = _service(request).create_mapping(integration_id, payload)
    except ConfigurationError as e:
        raise HttpError(400, str(e)) from e

    if not mapping:
        raise HttpError(404, "Integration not found")

    return 201, _mapping_to_response(mapping)


@router.post(
    "/{integration_id}/mappings/reorder",
    response={200: FieldMappingListResponse, 400: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="reorderIntegrationMappings",
    summary="Reorder field mappings",
)
@require_admin
def reorder_mappings(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    payload: FieldMappingReorderRequest,
) -> FieldMappingListResponse:
    """Set the evaluation order of all mappings at once."""
    try:
        mappings = _service(request).reorder_mappings(integration_id, payload.mapping_ids)
    except ConfigurationError as e:
        raise HttpError(400, str(e)) from e

    if mappings is None:
        raise HttpError(404, "Integration not found")

    return FieldMappingListResponse(mappings=[_mapping_to_response(m) for m in mappings])


@router.patch(
    "/{integration_id}/mappings/{mapping_id}",
    response={200: FieldMappingResponse, 400: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="updateIntegrationMapping",
    summary="Update field mapping",
)
@require_admin
def update_mapping(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    mapping_id: str,
    payload: FieldMappingUpdate,
) -> FieldMappingResponse:
    """Update a field mapping. Only provided fields are updated."""
    try:
        mapping = _service(request).update_mapping(integration_id, mapping_id, payload)
    except ConfigurationError as e:
        raise HttpError(400, str(e)) from e

    if not mapping:
        raise HttpError(404, "Field mapping not found")

    return _mapping_to_response(mapping)


@router.delete(
    "/{integration_id}/mappings/{mapping_id}",
    response={204: None, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="deleteIntegrationMapping",
    summary="Delete field mapping",
)
@require_admin
def delete_mapping(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    mapping_id: str,
) -> tuple[int, None]:
    if not _service(request).delete_mapping(integration_id, mapping_id):
        raise HttpError(404, "Field mapping not found")
    return 204, None


# =============================================================================
# Execution History
# =============================================================================


@router.get(
    "/{integration_id}/logs",
    response={200: ExecutionLogListResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="listIntegrationLogs",
    summary="List execution log",
)
@require_admin
def list_logs(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    limit: int = 50,
) -> ExecutionLogListResponse:
    """
    List recent delivery attempts for an integration, newest first.

    Requires admin role.
    """
    service = _service(request)
    _get_integration_or_404(service, integration_id)
    logs = service.list_logs(integration_id, limit=limit)
    return ExecutionLogListResponse(logs=[_log_to_response(entry) for entry in logs])


@router.get(
    "/{integration_id}/deliveries",
    response={200: DeliveryListResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="listIntegrationDeliveries",
    summary="List deliveries",
)
@require_admin
def list_deliveries(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    limit: int = 50,
) -> DeliveryListResponse:
    """List deliveries for an integration, newest first."""
    service = _service(request)
    _get_integration_or_404(service, integration_id)
    deliveries = service.list_deliveries(integration_id, limit=limit)
    return DeliveryListResponse(
        deliveries=[DeliverySummaryResponse(**_delivery_fields(d)) for d in deliveries]
    )


@router.get(
    "/{integration_id}/deliveries/{delivery_id}",
    response={200: DeliveryResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="getIntegrationDelivery",
    summary="Get delivery with attempts",
)
@require_admin
def get_delivery(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    delivery_id: str,
) -> DeliveryResponse:
    """Get one delivery and its attempt chain, first attempt first."""
    service = _service(request)
    delivery = service.get_delivery(integration_id, delivery_id)
    if not delivery:
        raise HttpError(404, "Delivery not found")

    return DeliveryResponse(
        **_delivery_fields(delivery),
        attempts=[_log_to_response(entry) for entry in service.list_attempts(delivery)],
    )


@router.get(
    "/{integration_id}/health",
    response={200: IntegrationHealthResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="getIntegrationHealth",
    summary="Get integration health",
)
@require_admin
def get_health(
    request: AuthenticatedHttpRequest, integration_id: str
) -> IntegrationHealthResponse:
    """Summarize recent delivery results for an integration."""
    health = _service(request).get_health(integration_id)
    if not health:
        raise HttpError(404, "Integration not found")
    return IntegrationHealthResponse(**vars(health))


# =============================================================================
# Delivery Actions
# =============================================================================


@router.post(
    "/{integration_id}/test",
    response={200: IntegrationTestResponse, 404: ErrorResponse, 429: ErrorResponse},
    auth=bearer_auth,
    operation_id="testIntegration",
    summary="Send test payload",
)
@require_admin
def test_integration(
    request: AuthenticatedHttpRequest, integration_id: str
) -> IntegrationTestResponse:
    """
    Send a payload built from a sample application to the integration.

    Works for disabled integrations too. The attempt is recorded in the
    execution log.

    Requires admin role.
    """
    integration = _get_integration_or_404(_service(request), integration_id)

    try:
        TEST_SENDS.hit(integration.id)
    except RateLimitExceeded as e:
        raise HttpError(429, str(e)) from e

    result = services.test_integration(integration)

    return IntegrationTestResponse(
        success=result.success,
        outcome=result.outcome,
        delivery_id=result.delivery_id,
        sample_payload=result.sample_payload,
        response_summary=(
            ResponseSummary(**result.response_summary) if result.response_summary else None
        ),
        error_type=result.error_type,
        error_message=result.error_message,
        execution_time_ms=result.execution_time_ms,
    )


@router.post(
    "/{integration_id}/dispatch",
    response={202: DispatchResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="dispatchIntegration",
    summary="Send an application",
)
@require_admin
def dispatch_application(
    request: AuthenticatedHttpRequest,
    integration_id: str,
    payload: DispatchRequest,
) -> tuple[int, DispatchResponse]:
    """
    Queue delivery of a real application to this integration.

    Returns immediately; the outcome appears in the execution log.
    Disabled integrations are skipped.
    """
    integration = _get_integration_or_404(_service(request), integration_id)

    delivery = services.dispatch(integration.id, payload.application_id)
    if delivery is None:
        return 202, DispatchResponse(
            queued=False,
            delivery_id=None,
            detail="Integration is disabled",
        )

    return 202, DispatchResponse(queued=True, delivery_id=delivery.id)
