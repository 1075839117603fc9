"""
Tests for phone verification services.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from apps.qvote.models import QVoteConfig
from apps.qvote.services import get_config
from apps.verification.messaging import DeliveryResult
from apps.verification.models import MessageLog, VerificationCode, VerifiedVoter
from apps.verification.services import (
    consume_vote_quota,
    expire_stale_codes,
    get_status,
    release_vote_quota,
    send_code,
    validate_session,
    verify_code,
)
from apps.votes.models import Vote
from core.exceptions import (
    AlreadyVotedAllError,
    AlreadyVotedError,
    BlockedError,
    CodeExpiredError,
    InvalidCodeError,
    InvalidPhoneError,
    NoCodeError,
    QuotaExceededError,
    RateLimitedError,
    SendFailedError,
    UnauthorizedPhoneError,
    VerificationDisabledError,
    VoteLimitReachedError,
)

PHONE = "0501234567"
NORMALIZED = "+972501234567"


@pytest.fixture
def messaging():
    """Messaging client that always delivers over WhatsApp."""
    client = MagicMock()
    delivered = DeliveryResult(method="whatsapp", success=True, message_id="req-1")
    client.send_otp.return_value = (delivered, [delivered])
    with patch("apps.verification.services.get_messaging_client", return_value=client):
        yield client


@pytest.fixture
def fixed_otp():
    with patch("apps.verification.services.generate_otp", return_value="1234"):
        yield "1234"


@pytest.mark.unit
class TestSendCode:
    def test_sends_and_stores_hash(self, verified_config, messaging, fixed_otp):
        result = send_code(verified_config.code, PHONE, locale="en")

        assert result["method"] == "whatsapp"
        messaging.send_otp.assert_called_once_with(NORMALIZED, "1234", "whatsapp", "en")
        record = VerificationCode.objects.get()
        assert record.phone == NORMALIZED
        assert record.code_hash != "1234"
        assert record.status == VerificationCode.STATUS_PENDING
        assert MessageLog.objects.get().status == "sent"
        assert get_config(verified_config.code).message_quota_used == 1

    def test_disabled(self, qvote_config, messaging):
        with pytest.raises(VerificationDisabledError):
            send_code(qvote_config.code, PHONE)
        messaging.send_otp.assert_not_called()

    def test_invalid_phone(self, verified_config, messaging):
        with pytest.raises(InvalidPhoneError):
            send_code(verified_config.code, "12345")

    def test_authorized_voters_only(self, verified_config, messaging):
        verified_config.verification = {
            **verified_config.verification,
            "authorized_voters_only": True,
            "authorized_voters": [{"phone": "052-111-2222", "name": "Dana"}],
        }
        verified_config.save(update_fields=["verification"])

        with pytest.raises(UnauthorizedPhoneError):
            send_code(verified_config.code, PHONE)
        send_code(verified_config.code, "0521112222")

    def test_delivery_failure_keeps_no_code(self, verified_config, messaging):
        failed = DeliveryResult(method="whatsapp", success=False, error="template rejected")
        messaging.send_otp.return_value = (None, [failed])

        with pytest.raises(SendFailedError):
            send_code(verified_config.code, PHONE)

        assert not VerificationCode.objects.exists()
        log = MessageLog.objects.get()
        assert log.status == "failed"
        assert log.error == "template rejected"
        assert get_config(verified_config.code).message_quota_used == 0

    def test_cooldown_and_window(self, verified_config, messaging):
        start = timezone.now()
        with freeze_time(start) as frozen:
            send_code(verified_config.code, PHONE)

            frozen.tick(timedelta(seconds=30))
            with pytest.raises(RateLimitedError) as exc_info:
                send_code(verified_config.code, PHONE)
            assert exc_info.value.extra["retry_after"] == 31

            frozen.tick(timedelta(seconds=31))
            send_code(verified_config.code, PHONE)
            frozen.tick(timedelta(seconds=61))
            send_code(verified_config.code, PHONE)

            frozen.tick(timedelta(seconds=61))
            with pytest.raises(RateLimitedError):
                send_code(verified_config.code, PHONE)

        assert VerificationCode.objects.count() == 3

    def test_message_quota(self, verified_config, messaging):
        QVoteConfig.objects.filter(pk=verified_config.pk).update(message_quota_used=25)
        with pytest.raises(QuotaExceededError):
            send_code(verified_config.code, PHONE)
        messaging.send_otp.assert_not_called()

    def test_phone_with_no_votes_left(self, verified_config, messaging):
        VerifiedVoter.objects.create(
            code=verified_config.code,
            phone=NORMALIZED,
            votes_used=1,
            max_votes=1,
            session_token="t",
            session_expires_at=timezone.now() + timedelta(hours=1),
        )
        with pytest.raises(AlreadyVotedError):
            send_code(verified_config.code, PHONE)

    def test_voted_every_category(self, verified_config, categorized_config, messaging):
        for category in ("singing", "dancing"):
            Vote.objects.create(
                code=verified_config.code, voter_id="d1", round=1, category_key=category, phone=NORMALIZED
            )
        with pytest.raises(AlreadyVotedAllError):
            send_code(verified_config.code, PHONE)

    def test_blocked_phone(self, verified_config, messaging):
        VerificationCode.objects.create(
            code=verified_config.code,
            phone=NORMALIZED,
            code_hash="x",
            status=VerificationCode.STATUS_BLOCKED,
            expires_at=timezone.now() + timedelta(minutes=5),
            blocked_until=timezone.now() + timedelta(minutes=10),
        )
        with pytest.raises(BlockedError) as exc_info:
            send_code(verified_config.code, PHONE)
        assert "blocked_until" in exc_info.value.extra


@pytest.mark.unit
class TestVerifyCode:
    @pytest.fixture
    def sent(self, verified_config, messaging, fixed_otp):
        send_code(verified_config.code, PHONE)
        return verified_config

    def test_correct_code_opens_session(self, sent):
        result = verify_code(sent.code, PHONE, "1234")

        assert result["session_token"]
        assert result["votes_remaining"] == 1
        assert result["max_votes"] == 1
        voter = VerifiedVoter.objects.get()
        assert voter.phone == NORMALIZED
        assert VerificationCode.objects.get().status == VerificationCode.STATUS_VERIFIED
        assert validate_session(sent.code, PHONE, result["session_token"]) == voter

    def test_wrong_code_counts_attempts(self, sent):
        with pytest.raises(InvalidCodeError) as exc_info:
            verify_code(sent.code, PHONE, "0000")

        assert exc_info.value.extra["attempts_remaining"] == 2
        assert VerificationCode.objects.get().attempts == 1

    def test_lockout_persists(self, sent):
        for _ in range(3):
            with pytest.raises(InvalidCodeError):
                verify_code(sent.code, PHONE, "0000")

        with pytest.raises(BlockedError):
            verify_code(sent.code, PHONE, "1234")
        # The right code doesn't lift an active block
        with pytest.raises(BlockedError):
            verify_code(sent.code, PHONE, "1234")

        record = VerificationCode.objects.get()
        assert record.status == VerificationCode.STATUS_BLOCKED
        assert record.blocked_until > timezone.now() + timedelta(minutes=29)

    def test_block_expiry_restores_attempts(self, sent):
        for _ in range(3):
            with pytest.raises(InvalidCodeError):
                verify_code(sent.code, PHONE, "0000")
        with pytest.raises(BlockedError):
            verify_code(sent.code, PHONE, "0000")

        VerificationCode.objects.update(
            blocked_until=timezone.now() - timedelta(seconds=1),
            expires_at=timezone.now() + timedelta(minutes=5),
        )
        with pytest.raises(InvalidCodeError) as exc_info:
            verify_code(sent.code, PHONE, "0000")
        assert exc_info.value.extra["attempts_remaining"] == 2

    def test_expired_then_no_code(self, sent):
        VerificationCode.objects.update(expires_at=timezone.now() - timedelta(seconds=1))

        with pytest.raises(CodeExpiredError):
            verify_code(sent.code, PHONE, "1234")
        with pytest.raises(NoCodeError):
            verify_code(sent.code, PHONE, "1234")

    def test_no_code(self, verified_config):
        with pytest.raises(NoCodeError):
            verify_code(verified_config.code, PHONE, "1234")

    def test_reverify_rotates_session(self, sent):
        first = verify_code(sent.code, PHONE, "1234")
        VerificationCode.objects.update(created_at=timezone.now() - timedelta(minutes=10))

        send_code(sent.code, PHONE)
        second = verify_code(sent.code, PHONE, "1234")

        assert second["session_token"] != first["session_token"]
        assert VerifiedVoter.objects.count() == 1


@pytest.mark.unit
class TestQuotaAndStatus:
    @pytest.fixture
    def voter(self, verified_config):
        return VerifiedVoter.objects.create(
            code=verified_config.code,
            phone=NORMALIZED,
            max_votes=2,
            session_token="token-abc",
            session_expires_at=timezone.now() + timedelta(hours=1),
        )

    def test_consume_until_exhausted(self, voter):
        consume_vote_quota(voter)
        consume_vote_quota(voter)
        with pytest.raises(VoteLimitReachedError):
            consume_vote_quota(voter)
        assert voter.votes_used == 2

    def test_release_never_below_zero(self, voter, verified_config):
        release_vote_quota(verified_config.code, NORMALIZED)
        voter.refresh_from_db()
        assert voter.votes_used == 0

    def test_status_for_unknown_phone(self, verified_config):
        status = get_status(verified_config.code, PHONE)
        assert status["is_verified"] is False
        assert status["votes_remaining"] == 1

    def test_status_checks_token(self, voter, verified_config):
        assert get_status(verified_config.code, PHONE, "token-abc")["session_valid"] is True
        assert get_status(verified_config.code, PHONE, "stale")["session_valid"] is False

    def test_expire_stale_codes(self, verified_config):
        now = timezone.now()
        for minutes in (-1, 5):
            VerificationCode.objects.create(
                code=verified_config.code, phone=NORMALIZED, code_hash="x", expires_at=now + timedelta(minutes=minutes)
            )

        assert expire_stale_codes(now) == 1
        assert VerificationCode.objects.filter(status=VerificationCode.STATUS_EXPIRED).count() == 1
