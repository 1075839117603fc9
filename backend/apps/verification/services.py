"""
Phone verification services for Q.Vote.

A voter proves control of a phone with a one-time code and receives a
session token that authorizes votes up to a per-phone quota. Codes are
stored hashed, wrong guesses are counted, and too many wrong guesses lock
the phone out for a while. Lockout state lives on the stored code, so it
holds no matter which process answers the next request.
"""

import logging
from datetime import timedelta
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.qvote.models import QVoteConfig
from apps.qvote.phases import round_for_phase
from apps.qvote.services import get_config, qvote_setting
from core.exceptions import (
    AlreadyVotedAllError,
    AlreadyVotedError,
    BlockedError,
    CodeExpiredError,
    InvalidCodeError,
    InvalidPhoneError,
    InvalidSessionError,
    NoCodeError,
    NotVerifiedError,
    QuotaExceededError,
    RateLimitedError,
    SendFailedError,
    SessionExpiredError,
    UnauthorizedPhoneError,
    VerificationDisabledError,
    VerificationRequiredError,
    VoteLimitReachedError,
)
from core.utils.otp import generate_otp, generate_session_token, hash_otp, verify_otp
from core.utils.phone import is_valid_israeli_mobile, mask_phone, normalize_phone_number

from .messaging import get_messaging_client
from .models import MessageLog, VerificationCode, VerifiedVoter

logger = logging.getLogger(__name__)


def _clean_phone(phone) -> str:
    normalized = normalize_phone_number(phone or "")
    if not is_valid_israeli_mobile(normalized):
        raise InvalidPhoneError()
    return normalized


def _active_block(code, phone, now) -> Optional[VerificationCode]:
    return (
        VerificationCode.objects.filter(code=code, phone=phone, blocked_until__gt=now)
        .order_by("-blocked_until")
        .first()
    )


def _is_authorized(settings_: dict, phone: str) -> bool:
    for voter in settings_.get("authorized_voters") or []:
        candidate_phone = voter.get("phone") if isinstance(voter, dict) else voter
        if candidate_phone and normalize_phone_number(candidate_phone) == phone:
            return True
    return False


def _check_votes_left(config, phone):
    """Refuse a new code when the phone has nothing left to vote with."""
    from apps.votes.models import Vote

    if config.has_categories:
        round_number = round_for_phase(config.current_phase)
        voted = set(
            Vote.objects.filter(code=config.code, phone=phone, round=round_number).values_list(
                "category_key", flat=True
            )
        )
        if all(str(c["id"]) in voted for c in config.active_categories):
            raise AlreadyVotedAllError()
        return

    voter = VerifiedVoter.objects.filter(code=config.code, phone=phone).first()
    if voter is not None and voter.votes_remaining <= 0:
        raise AlreadyVotedError()


def _check_send_rate(code, phone, now):
    cooldown = qvote_setting("SEND_COOLDOWN_SECONDS", 60)
    window = qvote_setting("SEND_WINDOW_SECONDS", 300)
    window_limit = qvote_setting("SEND_WINDOW_LIMIT", 3)

    recent = list(
        VerificationCode.objects.filter(
            code=code, phone=phone, created_at__gt=now - timedelta(seconds=window)
        )
        .order_by("-created_at")
        .values_list("created_at", flat=True)
    )
    if recent:
        since_last = (now - recent[0]).total_seconds()
        if since_last < cooldown:
            raise RateLimitedError(
                "Please wait before requesting another code",
                retry_after=int(cooldown - since_last) + 1,
            )
    if len(recent) >= window_limit:
        oldest = recent[window_limit - 1]
        retry_after = int(window - (now - oldest).total_seconds()) + 1
        raise RateLimitedError(
            "Too many requests. Please wait a few minutes.", retry_after=max(retry_after, 1)
        )


def send_code(code_ref, phone: str, locale: str = "he") -> dict:
    """
    Send a one-time verification code to a phone.

    Args:
        code_ref: Code instance, id or short id
        phone: Phone number in any common Israeli format
        locale: 'he' or 'en' message template

    Returns:
        dict with ``method`` (channel used) and ``expires_at``

    Raises:
        VerificationDisabledError, InvalidPhoneError, UnauthorizedPhoneError,
        BlockedError, AlreadyVotedError, AlreadyVotedAllError,
        RateLimitedError, QuotaExceededError, SendFailedError
    """
    config = get_config(code_ref)
    code = config.code
    verification = config.verification_settings

    if not verification.get("enabled"):
        raise VerificationDisabledError()

    phone = _clean_phone(phone)

    if verification.get("authorized_voters_only") and not _is_authorized(verification, phone):
        raise UnauthorizedPhoneError()

    now = timezone.now()
    blocked = _active_block(code, phone, now)
    if blocked is not None:
        raise BlockedError(blocked_until=blocked.blocked_until.isoformat())

    _check_votes_left(config, phone)
    _check_send_rate(code, phone, now)

    if config.message_quota_used >= config.message_quota_limit:
        raise QuotaExceededError(remaining=0)

    otp = generate_otp(qvote_setting("OTP_LENGTH", 4))
    delivered, attempts = get_messaging_client().send_otp(
        phone, otp, verification.get("method", "whatsapp"), locale
    )

    for attempt in attempts:
        MessageLog.objects.create(
            code=code,
            phone=phone,
            method=attempt.method,
            status="sent" if attempt.success else "failed",
            message_id=attempt.message_id,
            error=attempt.error,
            locale=locale,
        )

    if delivered is None:
        logger.warning(f"Verification code to {mask_phone(phone)} could not be delivered")
        raise SendFailedError(details=attempts[-1].error if attempts else "")

    expires_at = now + timedelta(minutes=qvote_setting("OTP_EXPIRY_MINUTES", 5))
    with transaction.atomic():
        VerificationCode.objects.create(
            code=code,
            phone=phone,
            code_hash=hash_otp(otp, phone),
            method=delivered.method,
            created_at=now,
            expires_at=expires_at,
        )
        QVoteConfig.objects.filter(pk=config.pk).update(
            message_quota_used=F("message_quota_used") + 1
        )

    logger.info(f"Verification code sent to {mask_phone(phone)} via {delivered.method} for code {code.id}")
    return {
        "method": delivered.method,
        "expires_at": expires_at.isoformat(),
        "remaining_quota": max(0, config.message_quota_limit - config.message_quota_used - 1),
    }


def verify_code(code_ref, phone: str, submitted: str) -> dict:
    """
    Check a submitted one-time code and open a voting session.

    A block that has run out clears the attempt counter, so a voter gets a
    fresh set of attempts after waiting.

    Returns:
        dict with ``session_token``, ``votes_remaining``, ``max_votes``
        and ``votes_used``

    Raises:
        NoCodeError: No pending code for this phone
        BlockedError: Locked out (carries ``blocked_until``)
        CodeExpiredError: The code expired
        InvalidCodeError: Wrong code (carries ``attempts_remaining``)
    """
    config = get_config(code_ref)
    code = config.code
    phone = _clean_phone(phone)
    verification = config.verification_settings
    max_attempts = verification.get("max_attempts", 5)
    block_minutes = verification.get("block_duration_minutes", 30)

    # Failures are raised after commit so attempt counts and blocks persist
    error = None
    with transaction.atomic():
        record = (
            VerificationCode.objects.select_for_update()
            .filter(
                code=code,
                phone=phone,
                status__in=[VerificationCode.STATUS_PENDING, VerificationCode.STATUS_BLOCKED],
            )
            .order_by("-created_at", "-id")
            .first()
        )
        if record is None:
            raise NoCodeError()

        now = timezone.now()
        if record.is_blocked(now):
            raise BlockedError(blocked_until=record.blocked_until.isoformat())

        if record.blocked_until is not None:
            record.blocked_until = None
            record.attempts = 0
            record.status = VerificationCode.STATUS_PENDING
            record.save(update_fields=["blocked_until", "attempts", "status"])

        if record.is_expired(now):
            record.status = VerificationCode.STATUS_EXPIRED
            record.save(update_fields=["status"])
            error = CodeExpiredError()
        elif record.attempts >= max_attempts:
            record.status = VerificationCode.STATUS_BLOCKED
            record.blocked_until = now + timedelta(minutes=block_minutes)
            record.save(update_fields=["status", "blocked_until"])
            logger.warning(f"Phone {mask_phone(phone)} blocked on code {code.id}")
            error = BlockedError(blocked_until=record.blocked_until.isoformat())
        elif not verify_otp(str(submitted or "").strip(), record.code_hash, phone):
            record.attempts = F("attempts") + 1
            record.save(update_fields=["attempts"])
            record.refresh_from_db(fields=["attempts"])
            error = InvalidCodeError(attempts_remaining=max(0, max_attempts - record.attempts))
        else:
            record.status = VerificationCode.STATUS_VERIFIED
            record.verified_at = now
            record.save(update_fields=["status", "verified_at"])
            voter = _open_session(code, phone, verification, now)

    if error is not None:
        raise error

    logger.info(f"Phone {mask_phone(phone)} verified for code {code.id}")
    return {
        "session_token": voter.session_token,
        "session_expires_at": voter.session_expires_at.isoformat(),
        "votes_remaining": voter.votes_remaining,
        "max_votes": voter.max_votes,
        "votes_used": voter.votes_used,
    }


def _open_session(code, phone, verification, now) -> VerifiedVoter:
    session_token = generate_session_token()
    expires_at = now + timedelta(hours=qvote_setting("SESSION_TTL_HOURS", 24))
    max_votes = verification.get("max_votes_per_phone", 1)
    name = ""
    for voter in verification.get("authorized_voters") or []:
        if isinstance(voter, dict) and normalize_phone_number(voter.get("phone", "")) == phone:
            name = voter.get("name", "")
            break

    voter = VerifiedVoter.objects.select_for_update().filter(code=code, phone=phone).first()
    if voter is None:
        try:
            with transaction.atomic():
                return VerifiedVoter.objects.create(
                    code=code,
                    phone=phone,
                    name=name,
                    max_votes=max_votes,
                    session_token=session_token,
                    session_expires_at=expires_at,
                    verified_at=now,
                    last_verified_at=now,
                )
        except IntegrityError:
            voter = VerifiedVoter.objects.select_for_update().get(code=code, phone=phone)

    voter.session_token = session_token
    voter.session_expires_at = expires_at
    voter.last_verified_at = now
    voter.max_votes = max_votes
    if name:
        voter.name = name
    voter.save(update_fields=["session_token", "session_expires_at", "last_verified_at", "max_votes", "name"])
    return voter


def validate_session(code, phone: Optional[str], session_token: Optional[str]) -> VerifiedVoter:
    """
    Resolve the verified voter authorizing a submission.

    Raises:
        VerificationRequiredError: No phone or token supplied
        NotVerifiedError: The phone never verified for this code
        InvalidSessionError: Token doesn't match
        SessionExpiredError: Session lifetime is over
    """
    if not phone or not session_token:
        raise VerificationRequiredError()

    normalized = normalize_phone_number(phone)
    voter = VerifiedVoter.objects.filter(code=code, phone=normalized).first()
    if voter is None:
        raise NotVerifiedError()
    if voter.session_token != session_token:
        raise InvalidSessionError()
    if not voter.session_valid():
        raise SessionExpiredError()
    return voter


def consume_vote_quota(voter: VerifiedVoter) -> VerifiedVoter:
    """
    Use one vote from a phone's quota, atomically.

    Raises:
        VoteLimitReachedError: The quota is exhausted
    """
    updated = VerifiedVoter.objects.filter(pk=voter.pk, votes_used__lt=F("max_votes")).update(
        votes_used=F("votes_used") + 1
    )
    if not updated:
        raise VoteLimitReachedError()
    voter.refresh_from_db(fields=["votes_used", "max_votes"])
    return voter


def release_vote_quota(code, phone: str) -> None:
    """Give back one vote after the voter reset a vote-set."""
    VerifiedVoter.objects.filter(code=code, phone=phone, votes_used__gt=0).update(
        votes_used=F("votes_used") - 1
    )


def get_status(code_ref, phone: str, session_token: Optional[str] = None) -> dict:
    """Where a phone stands for a code; used to revalidate cached sessions."""
    config = get_config(code_ref)
    normalized = normalize_phone_number(phone or "")
    voter = VerifiedVoter.objects.filter(code=config.code, phone=normalized).first()

    if voter is None:
        return {
            "is_verified": False,
            "votes_used": 0,
            "votes_remaining": config.verification_settings.get("max_votes_per_phone", 1),
            "max_votes": config.verification_settings.get("max_votes_per_phone", 1),
            "session_valid": False,
        }

    session_valid = voter.session_valid() and (
        session_token is None or session_token == voter.session_token
    )
    return {
        "is_verified": True,
        "votes_used": voter.votes_used,
        "votes_remaining": voter.votes_remaining,
        "max_votes": voter.max_votes,
        "session_valid": session_valid,
    }


def expire_stale_codes(now=None) -> int:
    """Mark pending codes past their expiry as expired."""
    now = now or timezone.now()
    return VerificationCode.objects.filter(
        status=VerificationCode.STATUS_PENDING, expires_at__lte=now
    ).update(status=VerificationCode.STATUS_EXPIRED)
