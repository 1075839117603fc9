"""
URLs for Q.Vote app.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import QVoteViewSet

router = DefaultRouter()
router.register(r"qvote", QVoteViewSet, basename="qvote")

urlpatterns = [
    path("", include(router.urls)),
]
