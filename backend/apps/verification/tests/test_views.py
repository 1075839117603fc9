"""
Tests for the verification API.
"""

from unittest.mock import MagicMock, patch

import pytest
from django.urls import reverse
from rest_framework import status

from apps.verification.messaging import DeliveryResult


@pytest.fixture
def messaging():
    client = MagicMock()
    delivered = DeliveryResult(method="whatsapp", success=True, message_id="req-1")
    client.send_otp.return_value = (delivered, [delivered])
    with patch("apps.verification.services.get_messaging_client", return_value=client), patch(
        "apps.verification.services.generate_otp", return_value="1234"
    ):
        yield client


def url(name, code):
    return reverse(name, kwargs={"short_id": code.short_id})


@pytest.mark.django_db
class TestVerificationFlow:
    def test_send_verify_then_vote(self, api_client, verified_config, candidates, messaging):
        response = api_client.post(
            url("qvote-verification-send", verified_config.code), {"phone": "0501234567"}, format="json"
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data["method"] == "whatsapp"

        response = api_client.post(
            url("qvote-verification-verify", verified_config.code),
            {"phone": "0501234567", "code": "1234"},
            format="json",
        )
        assert response.status_code == status.HTTP_200_OK
        token = response.data["session_token"]

        response = api_client.post(
            url("qvote-vote", verified_config.code),
            {
                "voter_id": "device-1",
                "candidate_ids": [candidates[0].id],
                "phone": "0501234567",
                "session_token": token,
            },
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["votes_remaining"] == 0
        assert response.data["max_votes"] == 1

        response = api_client.get(
            url("qvote-verification-status", verified_config.code),
            {"phone": "0501234567", "session_token": token},
        )
        assert response.data["is_verified"] is True
        assert response.data["votes_used"] == 1
        assert response.data["session_valid"] is True

    def test_wrong_code(self, api_client, verified_config, messaging):
        api_client.post(url("qvote-verification-send", verified_config.code), {"phone": "0501234567"}, format="json")

        response = api_client.post(
            url("qvote-verification-verify", verified_config.code),
            {"phone": "0501234567", "code": "9999"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["errorCode"] == "INVALID_CODE"
        assert body["attempts_remaining"] == 2

    def test_send_cooldown_sets_retry_after(self, api_client, verified_config, messaging):
        send_url = url("qvote-verification-send", verified_config.code)
        api_client.post(send_url, {"phone": "0501234567"}, format="json")

        response = api_client.post(send_url, {"phone": "0501234567"}, format="json")

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json()["errorCode"] == "RATE_LIMITED"
        assert int(response["Retry-After"]) > 0

    def test_disabled(self, api_client, qvote_config, messaging):
        response = api_client.post(
            url("qvote-verification-send", qvote_config.code), {"phone": "0501234567"}, format="json"
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errorCode"] == "VERIFICATION_DISABLED"

    def test_phone_required(self, api_client, verified_config, messaging):
        response = api_client.post(url("qvote-verification-send", verified_config.code), {}, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
