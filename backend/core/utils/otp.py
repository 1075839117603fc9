"""
One-time password helpers for phone verification.

Codes are never stored in clear text: only a salted SHA-256 hash is
persisted, and comparisons run in constant time.
"""

import hashlib
import hmac
import secrets

from django.conf import settings


def _salt() -> str:
    return getattr(settings, "OTP_HASH_SALT", None) or settings.SECRET_KEY


def generate_otp(length: int = 4) -> str:
    """Generate a random numeric code of the given length."""
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_otp(code: str, phone: str = "") -> str:
    """Hash a code, binding it to the phone it was sent to."""
    payload = f"{_salt()}:{phone}:{code}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def verify_otp(code: str, stored_hash: str, phone: str = "") -> bool:
    """Compare a submitted code against a stored hash."""
    return hmac.compare_digest(hash_otp(code, phone), stored_hash)


def generate_session_token() -> str:
    """Generate an opaque verification session token."""
    return secrets.token_urlsafe(32)
