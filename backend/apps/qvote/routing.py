"""
WebSocket URL routing for Q.Vote app.
"""

from django.urls import re_path

from .consumers import QVoteViewerConsumer

websocket_urlpatterns = [
    re_path(r"ws/qvote/(?P<short_id>[A-Za-z0-9_-]+)/$", QVoteViewerConsumer.as_asgi()),
]
