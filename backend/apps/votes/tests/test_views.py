"""
Tests for the voting API.
"""

import time
from unittest.mock import MagicMock, patch

import pytest
from django.urls import reverse
from rest_framework import status

from apps.candidates.models import Candidate
from apps.votes.models import Vote


def vote_url(code):
    return reverse("qvote-vote", kwargs={"short_id": code.short_id})


@pytest.mark.django_db
class TestVoteEndpoint:
    def test_vote_counted(self, api_client, qvote_config, candidates):
        response = api_client.post(
            vote_url(qvote_config.code),
            {"voter_id": "device-1", "candidate_ids": [candidates[0].id, candidates[1].id]},
            format="json",
            HTTP_X_FORWARDED_FOR="192.168.1.50",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["success"] is True
        assert response.data["votes_submitted"] == 2
        assert response.data["round"] == 1
        assert "votes_remaining" not in response.data
        assert Vote.objects.get().ip_address == "192.168.1.50"

    def test_second_vote_conflicts(self, api_client, qvote_config, candidates):
        payload = {"voter_id": "device-1", "candidate_ids": [candidates[0].id]}
        api_client.post(vote_url(qvote_config.code), payload, format="json")

        response = api_client.post(vote_url(qvote_config.code), payload, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        body = response.json()
        assert body["success"] is False
        assert body["errorCode"] == "ALREADY_VOTED"
        assert Candidate.objects.get(pk=candidates[0].pk).vote_count == 1

    def test_too_many_selections(self, api_client, qvote_config, candidates):
        response = api_client.post(
            vote_url(qvote_config.code),
            {"voter_id": "device-1", "candidate_ids": [c.id for c in candidates]},
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errorCode"] == "TOO_MANY_SELECTIONS"

    def test_voting_closed(self, api_client, qvote_config, candidates):
        qvote_config.current_phase = "results"
        qvote_config.save()
        response = api_client.post(
            vote_url(qvote_config.code),
            {"voter_id": "device-1", "candidate_ids": [candidates[0].id]},
            format="json",
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["errorCode"] == "VOTING_CLOSED"

    def test_missing_voter_id(self, api_client, qvote_config, candidates):
        response = api_client.post(
            vote_url(qvote_config.code), {"candidate_ids": [candidates[0].id]}, format="json"
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_verification_required(self, api_client, verified_config, candidates):
        response = api_client.post(
            vote_url(verified_config.code),
            {"voter_id": "device-1", "candidate_ids": [candidates[0].id]},
            format="json",
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["errorCode"] == "VERIFICATION_REQUIRED"

    def test_unknown_code(self, api_client, db):
        response = api_client.post(
            reverse("qvote-vote", kwargs={"short_id": "nope"}),
            {"voter_id": "device-1", "candidate_ids": [1]},
            format="json",
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["errorCode"] == "CODE_NOT_FOUND"


@pytest.mark.django_db
class TestResetAndStatusEndpoints:
    def test_reset_then_status(self, api_client, qvote_config, candidates):
        qvote_config.max_vote_changes = 1
        qvote_config.save()
        api_client.post(
            vote_url(qvote_config.code),
            {"voter_id": "device-1", "candidate_ids": [candidates[0].id]},
            format="json",
        )

        reset_url = reverse("qvote-reset-voter", kwargs={"short_id": qvote_config.code.short_id})
        response = api_client.post(reset_url, {"voter_id": "device-1"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["removed_votes"] == 1
        assert response.data["new_change_count"] == 1

        status_url = reverse("qvote-voter-status", kwargs={"short_id": qvote_config.code.short_id})
        response = api_client.get(status_url, {"voter_id": "device-1"})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["voted_categories"] == {}
        assert response.data["change_count"] == 1
        assert response.data["max_vote_changes"] == 1

    def test_reset_not_allowed(self, api_client, qvote_config):
        reset_url = reverse("qvote-reset-voter", kwargs={"short_id": qvote_config.code.short_id})
        response = api_client.post(reset_url, {"voter_id": "device-1"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["errorCode"] == "VOTE_CHANGES_NOT_ALLOWED"

    def test_status_requires_voter_id(self, api_client, qvote_config):
        status_url = reverse("qvote-voter-status", kwargs={"short_id": qvote_config.code.short_id})
        assert api_client.get(status_url).status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestVoteThrottling:
    @pytest.fixture
    def limiter(self, settings):
        settings.DISABLE_RATE_LIMITING = False
        limiter = MagicMock()
        with patch("core.throttles.get_rate_limiter", return_value=limiter):
            yield limiter

    def test_headers_reported(self, api_client, qvote_config, candidates, limiter):
        reset_at = int(time.time()) + 60
        limiter.check_rate_limit.return_value = (True, {"limit": 10, "remaining": 9, "reset": reset_at})

        response = api_client.post(
            vote_url(qvote_config.code),
            {"voter_id": "device-1", "candidate_ids": [candidates[0].id]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response["X-RateLimit-Limit"] == "10"
        assert response["X-RateLimit-Remaining"] == "9"
        scopes = [c.kwargs["scope"] for c in limiter.check_rate_limit.call_args_list]
        assert scopes == ["vote:ip", "vote:voter"]

    def test_limit_exceeded(self, api_client, qvote_config, candidates, limiter):
        reset_at = int(time.time()) + 30
        limiter.check_rate_limit.return_value = (False, {"limit": 60, "remaining": 0, "reset": reset_at})

        response = api_client.post(
            vote_url(qvote_config.code),
            {"voter_id": "device-1", "candidate_ids": [candidates[0].id]},
            format="json",
        )

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json()["errorCode"] == "RATE_LIMITED"
        assert 0 < int(response["Retry-After"]) <= 30
        assert not Vote.objects.exists()
