"""
Helper utilities for Q.Vote.
"""

from datetime import datetime, timezone

from django.utils.dateparse import parse_datetime


def coerce_datetime(value):
    """
    Turn a stored schedule value (datetime or ISO string) into an aware datetime.

    Returns None for empty or unparseable values.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = parse_datetime(str(value))
        if dt is None:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def extract_ip_address(request):
    """Get the client IP address from a request."""
    if request is None:
        return None
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")
