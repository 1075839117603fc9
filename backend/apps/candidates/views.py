"""
Views for Candidates app.
"""

import logging
from dataclasses import replace

from rest_framework import status, viewsets
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from apps.qvote.permissions import is_code_owner
from apps.qvote.services import get_code
from core.exceptions import CandidateNotFoundError
from core.mixins import RateLimitHeadersMixin

from .models import Candidate, CandidatePhoto
from .serializers import (
    BatchStatusSerializer,
    CandidatePhotoSerializer,
    CandidateQuerySerializer,
    CandidateSerializer,
    CandidateWriteSerializer,
)
from .services import (
    add_photo,
    batch_update_status,
    create_candidate,
    delete_candidate,
    get_candidate,
    get_candidates,
    remove_photo,
    update_candidate,
)

logger = logging.getLogger(__name__)


class CandidateViewSet(RateLimitHeadersMixin, viewsets.ViewSet):
    """
    Candidates of one code.

    Endpoints:
    - GET    /api/v1/qvote/{short_id}/candidates/ - List (filters in query string)
    - POST   /api/v1/qvote/{short_id}/candidates/ - Create (owner) or self-register
    - GET    /api/v1/qvote/{short_id}/candidates/{id}/ - Detail
    - PATCH  /api/v1/qvote/{short_id}/candidates/{id}/ - Edit (owner)
    - DELETE /api/v1/qvote/{short_id}/candidates/{id}/ - Delete (owner)
    - POST   /api/v1/qvote/{short_id}/candidates/batch-status/ - Bulk status (owner)
    - POST   /api/v1/qvote/{short_id}/candidates/{id}/photos/ - Upload photo (owner)
    - DELETE /api/v1/qvote/{short_id}/candidates/{id}/photos/{photo_id}/ - Remove photo (owner)
    """

    parser_classes = [JSONParser, MultiPartParser, FormParser]
    permission_classes = [AllowAny]

    def _owned_code(self, request, short_id):
        code = get_code(short_id)
        if not is_code_owner(request.user, code):
            raise PermissionDenied("Only the code owner can manage candidates.")
        return code

    def list(self, request, short_id=None):
        code = get_code(short_id)
        query = CandidateQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        filters = query.to_filters()
        if not is_code_owner(request.user, code):
            # Voters only ever see approved, visible candidates
            filters = replace(filters, approved_only=True, exclude_hidden=True)

        candidates = get_candidates(code, filters)
        return Response(CandidateSerializer(candidates, many=True).data)

    def create(self, request, short_id=None):
        code = get_code(short_id)
        serializer = CandidateWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        visitor_id = data.pop("visitor_id", "")

        if is_code_owner(request.user, code):
            candidate = create_candidate(code, data, source=Candidate.SOURCE_PRODUCER)
        else:
            candidate = create_candidate(
                code, data, source=Candidate.SOURCE_SELF, visitor_id=visitor_id
            )
        return Response(CandidateSerializer(candidate).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, short_id=None, pk=None):
        code = get_code(short_id)
        candidate = get_candidate(code, pk)
        if not is_code_owner(request.user, code) and (candidate.is_hidden or not candidate.is_approved):
            raise CandidateNotFoundError(f"Candidate {pk} not found")
        return Response(CandidateSerializer(candidate).data)

    def partial_update(self, request, short_id=None, pk=None):
        code = self._owned_code(request, short_id)
        serializer = CandidateWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        patch = dict(serializer.validated_data)
        patch.pop("visitor_id", None)

        candidate = update_candidate(code, pk, patch)
        return Response(CandidateSerializer(candidate).data)

    def destroy(self, request, short_id=None, pk=None):
        code = self._owned_code(request, short_id)
        delete_candidate(code, pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def batch_status(self, request, short_id=None):
        """
        POST /api/v1/qvote/{short_id}/candidates/batch-status/

        Request Body:
        {
            "ids": [1, 2, 3],
            "is_approved": true
        }
        """
        code = self._owned_code(request, short_id)
        serializer = BatchStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        patch = dict(serializer.validated_data)
        ids = patch.pop("ids")

        result = batch_update_status(code, ids, patch)
        return Response({"success": not result["failed"], **result})

    def upload_photo(self, request, short_id=None, pk=None):
        code = self._owned_code(request, short_id)
        candidate = get_candidate(code, pk)
        upload = request.FILES.get("photo")
        if upload is None:
            raise ValidationError({"photo": "No file uploaded."})

        photo = add_photo(candidate, upload)
        return Response(CandidatePhotoSerializer(photo).data, status=status.HTTP_201_CREATED)

    def delete_photo(self, request, short_id=None, pk=None, photo_id=None):
        code = self._owned_code(request, short_id)
        candidate = get_candidate(code, pk)
        try:
            photo = candidate.photos.get(pk=photo_id)
        except CandidatePhoto.DoesNotExist:
            return Response({"error": "Photo not found"}, status=status.HTTP_404_NOT_FOUND)

        remove_photo(photo)
        return Response(status=status.HTTP_204_NO_CONTENT)
