"""
Views for Verification app.
"""

import logging

from rest_framework import viewsets
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .serializers import SendCodeSerializer, VerificationStatusQuerySerializer, VerifyCodeSerializer
from .services import get_status, send_code, verify_code

logger = logging.getLogger(__name__)


class VerificationViewSet(viewsets.ViewSet):
    """
    Phone verification for codes that require it.

    Endpoints:
    - POST /api/v1/qvote/{short_id}/verification/send/ - Send a one-time code
    - POST /api/v1/qvote/{short_id}/verification/verify/ - Check the code, open a session
    - GET  /api/v1/qvote/{short_id}/verification/status/?phone=&session_token= - Revalidate
    """

    permission_classes = [AllowAny]

    def send(self, request, short_id=None):
        serializer = SendCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = send_code(
            short_id,
            serializer.validated_data["phone"],
            locale=serializer.validated_data["locale"],
        )
        return Response({"success": True, **result})

    def verify(self, request, short_id=None):
        serializer = VerifyCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = verify_code(
            short_id,
            serializer.validated_data["phone"],
            serializer.validated_data["code"],
        )
        return Response({"success": True, **result})

    def status(self, request, short_id=None):
        serializer = VerificationStatusQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        result = get_status(
            short_id,
            serializer.validated_data["phone"],
            serializer.validated_data.get("session_token") or None,
        )
        return Response(result)
