"""
Dispatcher - HTTP delivery of compiled payloads to integrations.

One call to ``send`` is one HTTP round trip. ``attempt`` wraps it in the
delivery state machine: it writes exactly one execution log entry, then
moves the delivery to success, failed, or retrying (with the next attempt
time persisted).
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

from apps.core.logging import get_logger
from apps.core.utils import truncate

from .models import Delivery, ExecutionLog, Integration

logger = get_logger(__name__)

USER_AGENT = "LoanConsole-Integrations/1.0"
DEFAULT_LOG_BODY_LIMIT = 10_000

# Header names whose values are masked in the execution log
SECRET_HEADERS = frozenset({"authorization", "x-api-key"})


@dataclass
class ExecutionOutcome:
    """Result of a single delivery attempt."""

    success: bool
    retryable: bool
    http_status: int | None
    duration_ms: int
    response_headers: dict[str, str] | None = None
    response_body: str | None = None
    error_type: str = ""
    error_message: str = ""
    request_headers: dict[str, str] = field(default_factory=dict)


def mask_secret(value: str) -> str:
    """Keep only the last four characters of a secret."""
    if len(value) <= 8:
        return "****"
    return f"****{value[-4:]}"


def mask_headers(headers: dict[str, str]) -> dict[str, str]:
    """Copy of headers with secret values masked, for logging."""
    masked = {}
    for name, value in headers.items():
        if name.lower() not in SECRET_HEADERS:
            masked[name] = value
        elif name.lower() == "authorization" and value.startswith("Bearer "):
            masked[name] = f"Bearer {mask_secret(value[len('Bearer '):])}"
        else:
            masked[name] = mask_secret(value)
    return masked


def build_headers(integration: Integration) -> dict[str, str]:
    """
    Build request headers for an integration.

    Defaults (JSON content type, user agent) can be overridden by custom
    headers, matched case-insensitively. A configured API key is attached
    both as a Bearer token and as X-API-Key, which covers most receivers.
    """
    custom = {str(k): str(v) for k, v in (integration.headers or {}).items()}
    custom_names = {name.lower() for name in custom}

    headers = {
        name: value
        for name, value in (("Content-Type", "application/json"), ("User-Agent", USER_AGENT))
        if name.lower() not in custom_names
    }
    headers.update(custom)

    if integration.api_key:
        for name in [n for n in headers if n.lower() in SECRET_HEADERS]:
            del headers[name]
        headers["Authorization"] = f"Bearer {integration.api_key}"
        headers["X-API-Key"] = integration.api_key

    return headers


def _body_limit() -> int:
    return getattr(settings, "INTEGRATIONS_LOG_BODY_LIMIT", DEFAULT_LOG_BODY_LIMIT)


class Dispatcher:
    """Sends payloads to integrations and records each attempt."""

    def send(
        self,
        integration: Integration,
        payload: Any,
        headers: dict[str, str] | None = None,
    ) -> ExecutionOutcome:
        """
        Send one request to the integration's destination.

        The integration's timeout is a single deadline for the whole
        exchange: connecting, sending, waiting for the status line, and
        reading the body. The body is streamed and reading stops as soon
        as the deadline passes.

        Classification:
            2xx: success
            5xx, timeout, transport error: failure, retryable
            anything else (4xx, unfollowed 3xx): failure, permanent

        Returns:
            ExecutionOutcome with status details
        """
        if headers is None:
            headers = build_headers(integration)
        timeout = integration.timeout_seconds
        body = json.dumps(payload, cls=DjangoJSONEncoder)
        masked = mask_headers(headers)

        start_time = time.monotonic()
        deadline = start_time + timeout
        try:
            with (
                httpx.Client(timeout=httpx.Timeout(timeout)) as client,
                client.stream(
                    integration.method,
                    integration.url,
                    content=body,
                    headers=headers,
                ) as response,
            ):
                if time.monotonic() > deadline:
                    raise httpx.TimeoutException("No response before deadline")

                chunks = []
                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        raise httpx.TimeoutException("Response body not read before deadline")
                    chunks.append(chunk)

                text = b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")

            duration_ms = int((time.monotonic() - start_time) * 1000)
            response_body = truncate(text, _body_limit())
            response_headers = dict(response.headers)
            status_code = response.status_code

            if 200 <= status_code < 300:
                return ExecutionOutcome(
                    success=True,
                    retryable=False,
                    http_status=status_code,
                    duration_ms=duration_ms,
                    response_headers=response_headers,
                    response_body=response_body,
                    request_headers=masked,
                )

            return ExecutionOutcome(
                success=False,
                retryable=status_code >= 500,
                http_status=status_code,
                duration_ms=duration_ms,
                response_headers=response_headers,
                response_body=response_body,
                error_type=ExecutionLog.ErrorType.HTTP_ERROR,
                error_message=f"HTTP {status_code} from {integration.url}",
                request_headers=masked,
            )

        except httpx.TimeoutException:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            return ExecutionOutcome(
                success=False,
                retryable=True,
                http_status=None,
                duration_ms=duration_ms,
                error_type=ExecutionLog.ErrorType.TIMEOUT,
                error_message=f"Request to {integration.url} timed out after {timeout}s",
                request_headers=masked,
            )

        except httpx.TransportError as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            return ExecutionOutcome(
                success=False,
                retryable=True,
                http_status=None,
                duration_ms=duration_ms,
                error_type=ExecutionLog.ErrorType.CONNECTION_ERROR,
                error_message=f"Could not reach {integration.url}: {e}",
                request_headers=masked,
            )

        except Exception as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            logger.exception(
                "integration_request_unexpected_error",
                integration_id=integration.id,
                url=integration.url,
            )
            return ExecutionOutcome(
                success=False,
                retryable=True,
                http_status=None,
                duration_ms=duration_ms,
                error_type=ExecutionLog.ErrorType.CONNECTION_ERROR,
                error_message=f"Unexpected error calling {integration.url}: {e}",
                request_headers=masked,
            )

    def attempt(self, delivery: Delivery) -> ExecutionLog:
        """
        Run the next attempt of a delivery.

        Writes one pending log entry, sends the compiled payload, then
        completes the entry and advances the delivery:
        success -> success; permanent failure or exhausted budget -> failed;
        retryable failure with budget left -> retrying at now + retry delay.

        Returns:
            The completed execution log entry
        """
        integration = delivery.integration
        headers = build_headers(integration)

        log_entry = ExecutionLog.objects.create(
            integration=integration,
            delivery=delivery,
            application_id=delivery.application_id,
            request_url=integration.url,
            request_method=integration.method,
            request_headers=mask_headers(headers),
            request_body=delivery.payload,
            retry_count=delivery.attempts_made,
            status=ExecutionLog.Status.PENDING,
        )

        outcome = self.send(integration, delivery.payload, headers=headers)

        with transaction.atomic():
            delivery.attempts_made += 1
            if outcome.success:
                status = ExecutionLog.Status.SUCCESS
                delivery.finish(Delivery.Status.SUCCESS)
            elif outcome.retryable and delivery.attempts_made < delivery.max_attempts:
                status = ExecutionLog.Status.RETRYING
                delivery.schedule_retry(integration.retry_delay_seconds, outcome.error_message)
            else:
                status = ExecutionLog.Status.FAILED
                delivery.finish(Delivery.Status.FAILED, outcome.error_message)

            log_entry.complete(
                status,
                response_status=outcome.http_status,
                response_headers=outcome.response_headers,
                response_body=outcome.response_body,
                error_type=outcome.error_type,
                error_message=outcome.error_message,
                execution_time_ms=outcome.duration_ms,
            )

        # Test invocations leave the integration's health untouched
        if not delivery.is_test:
            if outcome.success:
                integration.record_execution_success()
            else:
                integration.record_execution_failure(status)

        logger.info(
            "integration_delivery_attempted",
            integration_id=integration.id,
            delivery_id=delivery.id,
            application_id=delivery.application_id or None,
            status=status,
            http_status=outcome.http_status,
            retry_count=log_entry.retry_count,
            error_type=outcome.error_type or None,
            duration_ms=outcome.duration_ms,
        )
        return log_entry

    def record_failure(
        self,
        delivery: Delivery,
        error_type: str,
        error_message: str,
    ) -> ExecutionLog:
        """
        Fail a delivery before any request is made (e.g. compilation error).

        Writes a single failed log entry naming the cause; no network call.
        """
        integration = delivery.integration
        with transaction.atomic():
            log_entry = ExecutionLog.objects.create(
                integration=integration,
                delivery=delivery,
                application_id=delivery.application_id,
                request_url=integration.url,
                request_method=integration.method,
                request_headers=mask_headers(build_headers(integration)),
                request_body=None,
                retry_count=delivery.attempts_made,
                status=ExecutionLog.Status.FAILED,
                error_type=error_type,
                error_message=error_message,
                execution_time_ms=0,
            )
            delivery.finish(Delivery.Status.FAILED, error_message)

        if not delivery.is_test:
            integration.record_execution_failure(ExecutionLog.Status.FAILED)

        logger.warning(
            "integration_delivery_rejected",
            integration_id=integration.id,
            delivery_id=delivery.id,
            application_id=delivery.application_id or None,
            error_type=error_type,
            error=error_message,
        )
        return log_entry
