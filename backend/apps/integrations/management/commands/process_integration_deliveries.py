"""
Process integration deliveries management command.

Polls for deliveries whose next attempt is due (scheduled retries, or
deliveries whose worker never picked them up) and runs them on the
dispatch pool.
"""

import random
import signal
import time

from django.core.management.base import BaseCommand

from apps.core.logging import get_logger
from apps.integrations.executor import shutdown_executor
from apps.integrations.services import process_due_deliveries

logger = get_logger(__name__)


class Command(BaseCommand):
    help = "Run integration deliveries whose next attempt is due"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._shutdown_requested = False

    def add_arguments(self, parser):
        parser.add_argument(
            "--once",
            action="store_true",
            help="Run once and exit (default: run continuously)",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=100,
            help="Number of deliveries to process per batch (default: 100)",
        )
        parser.add_argument(
            "--poll-interval",
            type=float,
            default=5.0,
            help="Seconds between polls when nothing is due (default: 5)",
        )

    def handle(self, *args, **options):
        self._setup_signal_handlers()

        once = options["once"]
        batch_size = options["batch_size"]
        poll_interval = options["poll_interval"]

        logger.info("integration_delivery_worker_started", batch_size=batch_size)

        try:
            while not self._shutdown_requested:
                try:
                    processed = process_due_deliveries(limit=batch_size)

                    if processed > 0:
                        logger.info("integration_deliveries_processed", count=processed)
                        if not once:
                            # Continue immediately while work is due
                            continue

                except Exception:
                    logger.exception("integration_delivery_worker_error")

                if once:
                    break

                self._sleep_with_jitter(poll_interval)
        finally:
            shutdown_executor()

        logger.info("integration_delivery_worker_shutdown")

    def _sleep_with_jitter(self, base_seconds: float) -> None:
        """Sleep with random jitter to avoid thundering herd."""
        jitter = base_seconds * 0.2 * random.random()
        time.sleep(base_seconds + jitter)

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown on SIGINT/SIGTERM."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        logger.info("integration_delivery_worker_signal_received", signal=signum)
        self._shutdown_requested = True
