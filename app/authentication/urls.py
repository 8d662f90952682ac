"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/token/           - Obtain access/refresh pair
    /api/v1/auth/token/refresh/   - Refresh access token
    /api/v1/auth/me/              - Current user
"""

from django.urls import path

from authentication.views import MeView, TokenObtainView, TokenRefreshAccessView

app_name = "authentication"

urlpatterns = [
    path("token/", TokenObtainView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshAccessView.as_view(), name="token-refresh"),
    path("me/", MeView.as_view(), name="me"),
]
