"""
Tests for cache-backed rate limits.
"""

import pytest
from django.core.cache import cache

from apps.core.throttling import RateLimit, RateLimitExceeded

TEST_SENDS = RateLimit("integration_test", max_requests=3, window_seconds=60)


class TestRateLimit:
    def test_counts_requests_in_window(self) -> None:
        assert [TEST_SENDS.hit("int_a") for _ in range(3)] == [1, 2, 3]

    def test_blocks_requests_over_limit(self) -> None:
        for _ in range(3):
            TEST_SENDS.hit("int_a")

        with pytest.raises(RateLimitExceeded) as exc_info:
            TEST_SENDS.hit("int_a")

        assert exc_info.value.retry_after == 60
        assert str(exc_info.value).startswith("Limit of 3 requests per 60s reached")

    def test_subjects_have_separate_windows(self) -> None:
        """Each integration has its own budget."""
        for _ in range(3):
            TEST_SENDS.hit("int_a")

        assert TEST_SENDS.hit("int_b") == 1

        with pytest.raises(RateLimitExceeded):
            TEST_SENDS.hit("int_a")

    def test_scopes_do_not_share_counters(self) -> None:
        other = RateLimit("dispatch", max_requests=3, window_seconds=60)
        TEST_SENDS.hit("int_a")

        assert other.hit("int_a") == 1

    def test_counter_lives_in_cache(self) -> None:
        TEST_SENDS.hit("int_a")
        TEST_SENDS.hit("int_a")

        assert cache.get("rate_limit:integration_test:int_a") == 2

    def test_expired_window_starts_over(self) -> None:
        for _ in range(3):
            TEST_SENDS.hit("int_a")
        cache.delete(TEST_SENDS.cache_key("int_a"))

        assert TEST_SENDS.hit("int_a") == 1
