"""
Fixed-window rate limits kept in Django's cache.

A limit is declared once and charged per subject:

    TEST_SENDS = RateLimit("integration_test", max_requests=10, window_seconds=60)
    TEST_SENDS.hit(integration.id)
"""

from dataclasses import dataclass

from django.core.cache import cache

from apps.core.logging import get_logger

logger = get_logger(__name__)


class RateLimitExceeded(Exception):
    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


@dataclass(frozen=True)
class RateLimit:
    scope: str
    max_requests: int
    window_seconds: int

    def cache_key(self, subject: str) -> str:
        return f"rate_limit:{self.scope}:{subject}"

    def hit(self, subject: str) -> int:
        """
        Charge one request to the subject's current window.

        The window opens with the first request and is not extended by
        later ones.

        Returns:
            Requests counted in the window so far, this one included

        Raises:
            RateLimitExceeded: If the count goes over max_requests
        """
        key = self.cache_key(subject)
        if cache.add(key, 1, timeout=self.window_seconds):
            count = 1
        else:
            try:
                count = cache.incr(key)
            except ValueError:
                # Window closed after add()
                cache.set(key, 1, timeout=self.window_seconds)
                count = 1

        if count > self.max_requests:
            logger.warning(
                "rate_limit_exceeded",
                scope=self.scope,
                subject=subject,
                limit=self.max_requests,
                window=self.window_seconds,
            )
            raise RateLimitExceeded(
                f"Limit of {self.max_requests} requests per {self.window_seconds}s reached. "
                "Please try again later.",
                retry_after=self.window_seconds,
            )
        return count
