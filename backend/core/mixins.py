"""
Mixin classes for Django REST Framework views.
"""


class RateLimitHeadersMixin:
    """
    Add rate limit headers to API responses.

    Reports the most restrictive window recorded by the throttles:
    - X-RateLimit-Limit
    - X-RateLimit-Remaining
    - X-RateLimit-Reset
    """

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)

        rate_limit_info = getattr(request, "rate_limit_info", None)
        if rate_limit_info:
            rate_info = min(
                rate_limit_info.values(),
                key=lambda x: x.get("remaining", float("inf")),
            )
            response["X-RateLimit-Limit"] = str(rate_info["limit"])
            response["X-RateLimit-Remaining"] = str(rate_info["remaining"])
            response["X-RateLimit-Reset"] = str(rate_info["reset"])

        return response
