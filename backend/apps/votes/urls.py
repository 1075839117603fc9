"""
URLs for Votes app.
"""

from django.urls import path

from .views import VoteViewSet

urlpatterns = [
    path(
        "qvote/<str:short_id>/vote/",
        VoteViewSet.as_view({"post": "vote"}),
        name="qvote-vote",
    ),
    path(
        "qvote/<str:short_id>/reset-voter/",
        VoteViewSet.as_view({"post": "reset_voter"}),
        name="qvote-reset-voter",
    ),
    path(
        "qvote/<str:short_id>/voter-status/",
        VoteViewSet.as_view({"get": "voter_status"}),
        name="qvote-voter-status",
    ),
]
