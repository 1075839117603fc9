"""
Sliding window rate limiting backed by Redis sorted sets.

Used by the DRF throttles guarding vote submission and vote resets.
The limiter fails open: if Redis is unreachable the request is allowed
and a warning is logged.
"""

import logging
import time
import uuid
from typing import Dict, Tuple

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Sliding window rate limiter using Redis sorted sets.

    Every accepted request adds a member scored with its timestamp; members
    older than the window are trimmed before counting.
    """

    def __init__(self, cache_key_prefix: str = "qvote_rate_limit"):
        """
        Initialize rate limiter.

        Args:
            cache_key_prefix: Prefix for Redis keys
        """
        self.cache_key_prefix = cache_key_prefix

    def _key(self, scope: str, identifier: str) -> str:
        return f"{self.cache_key_prefix}:{scope}:{identifier}"

    def check_rate_limit(
        self,
        identifier: str,
        limit: int,
        window_seconds: int,
        scope: str = "ip",
    ) -> Tuple[bool, Dict[str, int]]:
        """
        Record a request and report whether it is within the limit.

        Args:
            identifier: IP address, voter ID, or other identifier
            limit: Maximum number of requests allowed in the window
            window_seconds: Window length in seconds
            scope: Namespace for the identifier (e.g. 'vote:ip')

        Returns:
            Tuple of (is_allowed, info) where info has ``limit``,
            ``remaining`` and ``reset`` (unix timestamp).
        """
        cache_key = self._key(scope, identifier)
        now = time.time()
        window_start = now - window_seconds

        try:
            from django_redis import get_redis_connection

            redis_client = get_redis_connection("default")

            redis_client.zremrangebyscore(cache_key, 0, window_start)
            current_count = redis_client.zcard(cache_key)

            if current_count >= limit:
                return False, {
                    "remaining": 0,
                    "reset": self._reset_time(redis_client, cache_key, now, window_seconds),
                    "limit": limit,
                }

            redis_client.zadd(cache_key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
            redis_client.expire(cache_key, window_seconds + 10)

            return True, {
                "remaining": max(0, limit - current_count - 1),
                "reset": self._reset_time(redis_client, cache_key, now, window_seconds),
                "limit": limit,
            }

        except Exception as e:
            logger.warning(f"Rate limiter Redis error: {e}, allowing request")
            return True, {
                "remaining": limit,
                "reset": int(now) + window_seconds,
                "limit": limit,
            }

    @staticmethod
    def _reset_time(redis_client, cache_key, now, window_seconds) -> int:
        oldest = redis_client.zrange(cache_key, 0, 0, withscores=True)
        if oldest:
            return int(oldest[0][1]) + window_seconds
        return int(now) + window_seconds


_rate_limiter = None


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Get or create global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = SlidingWindowRateLimiter()
    return _rate_limiter
