"""
Dispatch pool - runs deliveries as independent units of work.

Each delivery runs on a worker thread, so a slow or retrying integration
never holds up another. With INTEGRATIONS_RUN_INLINE (tests, shell use)
deliveries run synchronously in the caller.
"""

import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from django.conf import settings
from django.db import close_old_connections, transaction

from apps.core.logging import clear_contextvars, get_logger

logger = get_logger(__name__)

DEFAULT_WORKERS = 8

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def get_executor() -> ThreadPoolExecutor:
    """Get the process-wide dispatch pool, creating it on first use."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=getattr(settings, "INTEGRATIONS_DISPATCH_WORKERS", DEFAULT_WORKERS),
                thread_name_prefix="integration-dispatch",
            )
        return _executor


def shutdown_executor(wait_for_pending: bool = True) -> None:
    """Stop the dispatch pool (used on graceful shutdown)."""
    global _executor
    with _executor_lock:
        if _executor is not None:
            _executor.shutdown(wait=wait_for_pending)
            _executor = None


def run_inline() -> bool:
    return getattr(settings, "INTEGRATIONS_RUN_INLINE", False)


def _run_in_worker(delivery_id: str) -> None:
    from .services import run_delivery

    close_old_connections()
    try:
        run_delivery(delivery_id)
    except Exception:
        logger.exception("integration_delivery_worker_error", delivery_id=delivery_id)
    finally:
        clear_contextvars()
        close_old_connections()


def submit_delivery(delivery_id: str) -> None:
    """
    Schedule a delivery to run once the current transaction commits.

    Fire-and-continue: the outcome is only observable through the
    execution log.
    """
    if run_inline():
        from .services import run_delivery

        run_delivery(delivery_id)
        return

    transaction.on_commit(lambda: get_executor().submit(_run_in_worker, delivery_id))


def run_deliveries(delivery_ids: Iterable[str]) -> int:
    """
    Run several deliveries concurrently and wait for all of them.

    Returns the number of deliveries processed.
    """
    delivery_ids = list(delivery_ids)
    if run_inline():
        from .services import run_delivery

        for delivery_id in delivery_ids:
            run_delivery(delivery_id)
        return len(delivery_ids)

    executor = get_executor()
    futures: list[Future] = [executor.submit(_run_in_worker, d) for d in delivery_ids]
    wait(futures)
    return len(futures)
