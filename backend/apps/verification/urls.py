"""
URLs for Verification app.
"""

from django.urls import path

from .views import VerificationViewSet

urlpatterns = [
    path(
        "qvote/<str:short_id>/verification/send/",
        VerificationViewSet.as_view({"post": "send"}),
        name="qvote-verification-send",
    ),
    path(
        "qvote/<str:short_id>/verification/verify/",
        VerificationViewSet.as_view({"post": "verify"}),
        name="qvote-verification-verify",
    ),
    path(
        "qvote/<str:short_id>/verification/status/",
        VerificationViewSet.as_view({"get": "status"}),
        name="qvote-verification-status",
    ),
]
