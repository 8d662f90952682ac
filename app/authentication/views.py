"""
Authentication views.

This module provides API views for:
- JWT token issuance for existing accounts (email + password)
- The current user's account summary

Related files:
    - serializers.py: Response serialization
    - urls.py: URL routing

Note:
    Registration, password reset and social login are not offered; accounts
    are provisioned by admins (see the create_chat_user command).
"""

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from authentication.serializers import UserSerializer


@extend_schema(
    summary="Obtain token pair",
    description="Exchange email and password for an access/refresh JWT pair.",
    tags=["Auth"],
)
class TokenObtainView(TokenObtainPairView):
    """Email/password login returning access and refresh tokens."""


@extend_schema(
    summary="Refresh access token",
    tags=["Auth"],
)
class TokenRefreshAccessView(TokenRefreshView):
    """Issue a new access token from a refresh token."""


class MeView(APIView):
    """
    API view for the authenticated account.

    GET: Return id, email, names and marketplace role

    URL: /api/v1/auth/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Get current user",
        tags=["Auth"],
        responses={200: UserSerializer},
    )
    def get(self, request):
        serializer = UserSerializer(request.user)
        return Response({"status": "success", "data": serializer.data})
