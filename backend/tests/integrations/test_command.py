"""
Tests for the process_integration_deliveries management command.
"""

from datetime import timedelta
from unittest.mock import patch

import httpx
import pytest
from django.core.management import call_command
from django.utils import timezone

from apps.integrations.models import Delivery

from .factories import DeliveryFactory, IntegrationFactory


@pytest.mark.django_db
class TestProcessIntegrationDeliveries:
    @patch.object(httpx.Client, "send")
    def test_once_runs_due_retries(self, mock_send) -> None:
        mock_send.return_value = httpx.Response(200)
        integration = IntegrationFactory.create(retry_attempts=2)
        due = DeliveryFactory.create(
            integration=integration,
            status=Delivery.Status.RETRYING,
            attempts_made=1,
            max_attempts=3,
            next_attempt_at=timezone.now() - timedelta(seconds=5),
        )
        later = DeliveryFactory.create(
            integration=integration,
            status=Delivery.Status.RETRYING,
            attempts_made=1,
            max_attempts=3,
            next_attempt_at=timezone.now() + timedelta(minutes=5),
        )

        call_command("process_integration_deliveries", "--once")

        due.refresh_from_db()
        later.refresh_from_db()
        assert due.status == Delivery.Status.SUCCESS
        assert due.attempts.get().retry_count == 1
        assert later.status == Delivery.Status.RETRYING
        assert mock_send.call_count == 1

    @patch.object(httpx.Client, "send")
    def test_once_with_nothing_due(self, mock_send) -> None:
        DeliveryFactory.create(status=Delivery.Status.SUCCESS, next_attempt_at=None)

        call_command("process_integration_deliveries", "--once")

        mock_send.assert_not_called()

    def test_errors_are_logged_not_raised(self) -> None:
        with patch(
            "apps.integrations.management.commands.process_integration_deliveries.process_due_deliveries",
            side_effect=RuntimeError("database unavailable"),
        ) as mock_process:
            call_command("process_integration_deliveries", "--once", "--batch-size", "5")

        mock_process.assert_called_once_with(limit=5)
