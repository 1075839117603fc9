"""
Sliding window throttles for the Q.Vote API.

Vote submission and vote resets are limited both per client IP and per
voter id, mirroring the limits the public voting endpoints enforce.
Limits are read from ``settings.QVOTE`` so deployments can tune them.
"""

import time
from typing import Optional

from django.conf import settings
from rest_framework.throttling import BaseThrottle

from core.exceptions import RateLimitedError
from core.utils.helpers import extract_ip_address
from core.utils.rate_limiter import get_rate_limiter


def qvote_setting(name, default=None):
    return getattr(settings, "QVOTE", {}).get(name, default)


class SlidingWindowThrottle(BaseThrottle):
    """
    Base throttle backed by the sliding window rate limiter.

    Subclasses set ``scope`` and ``limit_setting`` and implement
    ``get_ident``. Exceeding the limit raises ``RateLimitedError`` so the
    response carries the ``RATE_LIMITED`` error code and a Retry-After hint.
    """

    scope = "default"
    limit_setting: Optional[str] = None
    default_limit: int = 60
    window_seconds: int = 60

    def get_ident(self, request) -> Optional[str]:
        return extract_ip_address(request) or "unknown"

    def get_rate_limit(self) -> Optional[int]:
        if getattr(settings, "DISABLE_RATE_LIMITING", False):
            return None
        if self.limit_setting is None:
            return self.default_limit
        return qvote_setting(self.limit_setting, self.default_limit)

    def allow_request(self, request, view):
        rate_limit = self.get_rate_limit()
        ident = self.get_ident(request)
        if rate_limit is None or not ident:
            return True

        is_allowed, rate_info = get_rate_limiter().check_rate_limit(
            identifier=ident,
            limit=rate_limit,
            window_seconds=self.window_seconds,
            scope=self.scope,
        )

        if not hasattr(request, "rate_limit_info"):
            request.rate_limit_info = {}
        request.rate_limit_info[self.scope] = rate_info

        if not is_allowed:
            retry_after = max(0, rate_info["reset"] - int(time.time()))
            raise RateLimitedError(retry_after=retry_after)

        return True

    def wait(self):
        return None


class VoterIdentMixin:
    """Identify the client by the ``voter_id`` sent with the request."""

    def get_ident(self, request):
        voter_id = request.data.get("voter_id") if hasattr(request, "data") else None
        return str(voter_id) if voter_id else None


class VoteIPThrottle(SlidingWindowThrottle):
    scope = "vote:ip"
    limit_setting = "VOTE_RATE_LIMIT_IP"
    default_limit = 60


class VoteVoterThrottle(VoterIdentMixin, SlidingWindowThrottle):
    scope = "vote:voter"
    limit_setting = "VOTE_RATE_LIMIT_VOTER"
    default_limit = 10


class ResetIPThrottle(SlidingWindowThrottle):
    scope = "reset:ip"
    limit_setting = "RESET_RATE_LIMIT_IP"
    default_limit = 5


class ResetVoterThrottle(VoterIdentMixin, SlidingWindowThrottle):
    scope = "reset:voter"
    limit_setting = "RESET_RATE_LIMIT_VOTER"
    default_limit = 3
    window_seconds = 300
