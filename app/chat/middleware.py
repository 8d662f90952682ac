"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections.
Supports token via query string or subprotocol.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: WebSocket handlers
    - config/asgi.py: ASGI configuration

Token Passing Methods:
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })

The middleware never rejects a connection itself. It places either the
authenticated user or AnonymousUser in scope["user"]; ChatConsumer closes
unauthenticated sockets with code 4001.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)

JWT_SUBPROTOCOL = "jwt"


def extract_token(scope) -> tuple[str | None, str | None]:
    """
    Find the access token in a websocket scope.

    Returns:
        (token, subprotocol) where subprotocol is "jwt" when the token came
        from Sec-WebSocket-Protocol and must be echoed back on accept.
    """
    # Undecodable bytes become U+FFFD and fail token validation downstream
    query = parse_qs(scope.get("query_string", b"").decode("utf-8", errors="replace"))
    tokens = query.get("token")
    if tokens and tokens[0]:
        return tokens[0], None

    subprotocols = list(scope.get("subprotocols") or [])
    if len(subprotocols) >= 2 and subprotocols[0] == JWT_SUBPROTOCOL:
        return subprotocols[1], JWT_SUBPROTOCOL

    return None, None


@database_sync_to_async
def get_user_for_token(raw_token: str):
    """Validate an access token and load its active user."""
    try:
        token = AccessToken(raw_token)
    except TokenError as e:
        logger.debug(f"Rejected websocket token: {e}")
        return AnonymousUser()

    user_id = token.get(api_settings.USER_ID_CLAIM)
    if user_id is None:
        return AnonymousUser()

    user = (
        get_user_model()
        .objects.filter(**{api_settings.USER_ID_FIELD: user_id}, is_active=True)
        .first()
    )
    return user or AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts JWT token from query string or subprotocol,
    validates it, and attaches the user to the scope.

    Token sources (in order of precedence):
        1. Query string: ?token=<jwt_token>
        2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token, subprotocol = extract_token(scope)

        scope["user"] = (
            await get_user_for_token(token) if token else AnonymousUser()
        )
        scope["auth_subprotocol"] = subprotocol

        return await super().__call__(scope, receive, send)
