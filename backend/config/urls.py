"""
URL configuration for the Q.Vote project.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)
from rest_framework.decorators import api_view, permission_classes, renderer_classes
from rest_framework.permissions import AllowAny
from rest_framework.renderers import JSONRenderer
from rest_framework.response import Response


@api_view(["GET"])
@permission_classes([AllowAny])
@renderer_classes([JSONRenderer])  # Only use JSONRenderer to avoid BrowsableAPIRenderer template issues
def api_root(request):
    """API root endpoint that lists available endpoints."""
    data = {
        "message": "Welcome to the Q.Vote API",
        "version": "1.0.0",
        "documentation": {
            "swagger_ui": "/api/docs/",
            "redoc": "/api/redoc/",
            "schema": "/api/schema/",
        },
        "endpoints": {
            "codes": "/api/v1/qvote/",
            "config": "/api/v1/qvote/{short_id}/config/",
            "candidates": "/api/v1/qvote/{short_id}/candidates/",
            "vote": "/api/v1/qvote/{short_id}/vote/",
            "reset_voter": "/api/v1/qvote/{short_id}/reset-voter/",
            "verification": "/api/v1/qvote/{short_id}/verification/",
            "viewer": "/ws/qvote/{short_id}/",
        },
        "info": "For detailed API documentation, visit /api/docs/ or /api/redoc/",
    }

    return Response(data)


urlpatterns = [
    path("admin/", admin.site.urls),
    # API Root - accessible without authentication
    path("api/v1/", api_root, name="api-root"),
    path("api/v1/", include("apps.qvote.urls")),
    path("api/v1/", include("apps.candidates.urls")),
    path("api/v1/", include("apps.votes.urls")),
    path("api/v1/", include("apps.verification.urls")),
    # API Documentation
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
