"""
Tests for sliding window rate limiter.
"""

import time
from unittest.mock import MagicMock, patch

from core.utils.rate_limiter import SlidingWindowRateLimiter, get_rate_limiter


class TestSlidingWindowRateLimiter:
    """Tests for SlidingWindowRateLimiter."""

    def test_rate_limiter_default_prefix(self):
        limiter = SlidingWindowRateLimiter()
        assert limiter.cache_key_prefix == "qvote_rate_limit"

    @patch("django_redis.get_redis_connection")
    def test_check_rate_limit_allows_request(self, mock_get_redis):
        mock_redis = MagicMock()
        mock_get_redis.return_value = mock_redis
        mock_redis.zcard.return_value = 5
        mock_redis.zrange.return_value = [("x", int(time.time()) - 30)]

        limiter = SlidingWindowRateLimiter()
        is_allowed, info = limiter.check_rate_limit(
            identifier="voter-1", limit=10, window_seconds=60, scope="vote:voter"
        )

        assert is_allowed is True
        assert info["remaining"] == 4
        assert info["limit"] == 10
        mock_redis.zadd.assert_called_once()
        key = mock_redis.zadd.call_args[0][0]
        assert key == "qvote_rate_limit:vote:voter:voter-1"

    @patch("django_redis.get_redis_connection")
    def test_check_rate_limit_blocks_request(self, mock_get_redis):
        mock_redis = MagicMock()
        mock_get_redis.return_value = mock_redis
        mock_redis.zcard.return_value = 10
        oldest = int(time.time()) - 30
        mock_redis.zrange.return_value = [("x", oldest)]

        limiter = SlidingWindowRateLimiter()
        is_allowed, info = limiter.check_rate_limit(
            identifier="voter-1", limit=10, window_seconds=60
        )

        assert is_allowed is False
        assert info["remaining"] == 0
        assert info["reset"] == oldest + 60
        mock_redis.zadd.assert_not_called()

    @patch("django_redis.get_redis_connection")
    def test_check_rate_limit_fails_open(self, mock_get_redis):
        mock_get_redis.side_effect = Exception("Redis connection failed")

        limiter = SlidingWindowRateLimiter()
        is_allowed, info = limiter.check_rate_limit(
            identifier="voter-1", limit=10, window_seconds=60
        )

        assert is_allowed is True
        assert info["remaining"] == 10

    def test_get_rate_limiter_singleton(self):
        assert get_rate_limiter() is get_rate_limiter()
