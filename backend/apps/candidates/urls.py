"""
URLs for Candidates app.
"""

from django.urls import path

from .views import CandidateViewSet

candidate_list = CandidateViewSet.as_view({"get": "list", "post": "create"})
candidate_detail = CandidateViewSet.as_view(
    {"get": "retrieve", "patch": "partial_update", "delete": "destroy"}
)
candidate_batch_status = CandidateViewSet.as_view({"post": "batch_status"})
candidate_photos = CandidateViewSet.as_view({"post": "upload_photo"})
candidate_photo_detail = CandidateViewSet.as_view({"delete": "delete_photo"})

urlpatterns = [
    path("qvote/<str:short_id>/candidates/", candidate_list, name="qvote-candidates"),
    path(
        "qvote/<str:short_id>/candidates/batch-status/",
        candidate_batch_status,
        name="qvote-candidates-batch-status",
    ),
    path(
        "qvote/<str:short_id>/candidates/<int:pk>/",
        candidate_detail,
        name="qvote-candidate-detail",
    ),
    path(
        "qvote/<str:short_id>/candidates/<int:pk>/photos/",
        candidate_photos,
        name="qvote-candidate-photos",
    ),
    path(
        "qvote/<str:short_id>/candidates/<int:pk>/photos/<int:photo_id>/",
        candidate_photo_detail,
        name="qvote-candidate-photo-detail",
    ),
]
