"""
Views for Q.Vote configuration, phase control and results.
"""

import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.candidates.serializers import CandidateSerializer
from core.mixins import RateLimitHeadersMixin

from .models import Code
from .permissions import IsCodeOwnerOrReadOnly, is_code_owner
from .serializers import PhaseAdvanceSerializer, QVoteConfigSerializer, ResultsQuerySerializer
from .services import (
    advance_phase,
    delete_all_data,
    get_config,
    get_results,
    recalculate_stats,
    reset_all_votes,
    update_config,
)

logger = logging.getLogger(__name__)


class QVoteViewSet(RateLimitHeadersMixin, viewsets.GenericViewSet):
    """
    Q.Vote control surface for one code.

    Endpoints:
    - GET   /api/v1/qvote/{short_id}/config/ - Current config and stats
    - PATCH /api/v1/qvote/{short_id}/config/ - Update config (owner)
    - POST  /api/v1/qvote/{short_id}/advance-phase/ - Set phase (owner)
    - POST  /api/v1/qvote/{short_id}/reset-votes/ - Wipe all votes (owner)
    - POST  /api/v1/qvote/{short_id}/recalculate-stats/ - Rebuild stats (owner)
    - POST  /api/v1/qvote/{short_id}/reset-all/ - Delete candidates and votes (owner)
    - GET   /api/v1/qvote/{short_id}/results/ - Ranked candidates
    """

    queryset = Code.objects.all()
    lookup_field = "short_id"
    permission_classes = [IsCodeOwnerOrReadOnly]
    serializer_class = QVoteConfigSerializer

    def _config_response(self, request, config):
        context = {"include_private": is_code_owner(request.user, config.code)}
        return QVoteConfigSerializer(config, context=context).data

    @action(detail=True, methods=["get", "patch"], url_path="config")
    def config(self, request, short_id=None):
        code = self.get_object()
        if request.method == "PATCH":
            config = update_config(code, request.data, partial=True)
        else:
            config = get_config(code)
        return Response(self._config_response(request, config))

    @action(detail=True, methods=["post"], url_path="advance-phase")
    def advance_phase(self, request, short_id=None):
        """
        POST /api/v1/qvote/{short_id}/advance-phase/

        Request Body:
        {
            "phase": "voting"
        }
        """
        code = self.get_object()
        serializer = PhaseAdvanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        config = advance_phase(code, serializer.validated_data["phase"], user=request.user)
        return Response(self._config_response(request, config))

    @action(detail=True, methods=["post"], url_path="reset-votes")
    def reset_votes(self, request, short_id=None):
        code = self.get_object()
        return Response(reset_all_votes(code))

    @action(detail=True, methods=["post"], url_path="recalculate-stats")
    def recalculate_stats(self, request, short_id=None):
        code = self.get_object()
        stats = recalculate_stats(code)
        return Response({"success": True, "stats": stats})

    @action(detail=True, methods=["post"], url_path="reset-all")
    def reset_all(self, request, short_id=None):
        code = self.get_object()
        result = delete_all_data(code)
        logger.info(f"Code {code.id}: reset-all requested by user {request.user.id}")
        return Response(result, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="results")
    def results(self, request, short_id=None):
        """
        Candidates ranked by votes.

        Query params: round (1|2), category_id, limit
        """
        code = self.get_object()
        query = ResultsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        round_number = int(query.validated_data.get("round", 1))

        ranked = get_results(
            code,
            round_number=round_number,
            category_id=query.validated_data.get("category_id") or None,
            limit=query.validated_data.get("limit"),
        )
        return Response(
            {
                "round": round_number,
                "results": [
                    {
                        **CandidateSerializer(candidate).data,
                        "rank": index + 1,
                        "votes": candidate.votes_for_round(round_number),
                    }
                    for index, candidate in enumerate(ranked)
                ],
            }
        )
