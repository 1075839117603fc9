"""
Views for Votes app.
"""

import logging

from rest_framework import status, viewsets
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.mixins import RateLimitHeadersMixin
from core.throttles import ResetIPThrottle, ResetVoterThrottle, VoteIPThrottle, VoteVoterThrottle
from core.utils.helpers import extract_ip_address

from .serializers import VoteResetSerializer, VoterStatusQuerySerializer, VoteSubmitSerializer
from .services import get_voter_status, reset_vote, submit_votes

logger = logging.getLogger(__name__)


class VoteViewSet(RateLimitHeadersMixin, viewsets.ViewSet):
    """
    Public voting endpoints for one code.

    Endpoints:
    - POST /api/v1/qvote/{short_id}/vote/ - Submit a vote-set
    - POST /api/v1/qvote/{short_id}/reset-voter/ - Undo a vote-set to vote again
    - GET  /api/v1/qvote/{short_id}/voter-status/?voter_id= - What a voter has cast
    """

    permission_classes = [AllowAny]

    def get_throttles(self):
        """Return throttles based on action."""
        if self.action == "vote":
            return [VoteIPThrottle(), VoteVoterThrottle()]
        elif self.action == "reset_voter":
            return [ResetIPThrottle(), ResetVoterThrottle()]
        return []

    def vote(self, request, short_id=None):
        """
        Submit a vote-set.

        Request Body:
        {
            "voter_id": "device-uuid",
            "candidate_ids": [1, 2],
            "category_id": "optional",
            "phone": "optional, when verification is enabled",
            "session_token": "optional, when verification is enabled"
        }

        Returns:
        - 201 Created: Vote counted
        - 400 Bad Request: Invalid selection or voting closed
        - 401/403: Verification failures
        - 409 Conflict: Already voted
        - 429 Too Many Requests: Rate limit exceeded
        """
        serializer = VoteSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = submit_votes(
            short_id,
            voter_id=data["voter_id"],
            candidate_ids=data["candidate_ids"],
            round=data.get("round"),
            category_id=data.get("category_id") or None,
            phone=data.get("phone") or None,
            session_token=data.get("session_token") or None,
            ip_address=extract_ip_address(request),
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
        )

        body = {
            "success": True,
            "votes_submitted": result.votes_submitted,
            "round": result.round,
            "category_id": result.category_id,
        }
        if result.votes_remaining is not None:
            body["votes_remaining"] = result.votes_remaining
            body["max_votes"] = result.max_votes
        return Response(body, status=status.HTTP_201_CREATED)

    def reset_voter(self, request, short_id=None):
        serializer = VoteResetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = reset_vote(
            short_id,
            data["voter_id"],
            round=int(data.get("round") or 1),
            category_id=data.get("category_id") or None,
        )
        return Response(
            {
                "success": result.success,
                "removed_votes": result.removed_votes,
                "new_change_count": result.new_change_count,
            }
        )

    def voter_status(self, request, short_id=None):
        serializer = VoterStatusQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(get_voter_status(short_id, serializer.validated_data["voter_id"]))
