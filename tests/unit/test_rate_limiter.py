"""Unit tests for the order rate limiter."""

import time
from unittest.mock import patch

from storefront.core.rate_limiter import InMemoryRateLimiter, RateLimitConfig


class TestInMemoryRateLimiter:
    """Tests for InMemoryRateLimiter."""

    def test_allows_up_to_limit(self) -> None:
        limiter = InMemoryRateLimiter(RateLimitConfig(max_requests=3, window_seconds=60))

        results = [limiter.check_and_increment("order:user-1") for _ in range(3)]

        assert [allowed for allowed, _, _ in results] == [True, True, True]
        assert [remaining for _, remaining, _ in results] == [2, 1, 0]

    def test_blocks_over_limit_with_retry_after(self) -> None:
        limiter = InMemoryRateLimiter(RateLimitConfig(max_requests=1, window_seconds=60))
        limiter.check_and_increment("order:user-1")

        allowed, remaining, retry_after = limiter.check_and_increment("order:user-1")

        assert allowed is False
        assert remaining == 0
        assert 0 < retry_after <= 61

    def test_keys_are_independent(self) -> None:
        limiter = InMemoryRateLimiter(RateLimitConfig(max_requests=1, window_seconds=60))
        limiter.check_and_increment("order:user-1")

        allowed, _, _ = limiter.check_and_increment("order:user-2")

        assert allowed is True

    def test_window_expiry_allows_again(self) -> None:
        limiter = InMemoryRateLimiter(RateLimitConfig(max_requests=1, window_seconds=60))
        limiter.check_and_increment("order:user-1")

        with patch("storefront.core.rate_limiter.time.time", return_value=time.time() + 61):
            allowed, _, _ = limiter.check_and_increment("order:user-1")

        assert allowed is True

    def test_cleanup_and_reset(self) -> None:
        limiter = InMemoryRateLimiter(RateLimitConfig(max_requests=5, window_seconds=60))
        limiter.check_and_increment("a")
        limiter.check_and_increment("b")

        with patch("storefront.core.rate_limiter.time.time", return_value=time.time() + 120):
            assert limiter.cleanup() == 2

        limiter.check_and_increment("c")
        limiter.reset()
        allowed, remaining, _ = limiter.check_and_increment("c")
        assert allowed is True
        assert remaining == 4
