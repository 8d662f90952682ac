"""
URL configuration for the marketplace chat backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Token endpoints
        token/                     - Obtain access/refresh pair (email + password)
        token/refresh/             - Refresh access token
        me/                        - Current user
    /api/v1/chat/                  - Chat endpoints
        (root)                     - Conversation list (GET) / create-or-get (POST)
        unread-count/              - Total unread messages for the caller
        messages/{id}/read/        - Mark one message as read
        conversations/{id}/        - Delete conversation
        {id}/                      - Conversation detail
        {id}/messages/             - Message history (GET) / send (POST)
        {id}/read/                 - Mark whole conversation as read

WebSocket routes live in chat.routing and are mounted by config.asgi.
"""

from django.contrib import admin
from django.urls import include, path, re_path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    # Trailing slash optional on the chat root as well
    re_path(r"^chat(?:/|$)", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Marketplace Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Conversations, messages and users"
