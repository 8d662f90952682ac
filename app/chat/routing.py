"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - One socket per user session; events for all of the user's
               conversations arrive on it

Authentication:
    JWT access token as query parameter (?token=<jwt_access_token>) or as
    subprotocol ("jwt", "<jwt_access_token>"). JWTAuthMiddleware resolves
    the user into the consumer's scope.
"""

from django.urls import re_path

from chat import consumers

websocket_urlpatterns = [
    re_path(r"^ws/chat/?$", consumers.ChatConsumer.as_asgi()),
]
