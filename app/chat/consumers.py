"""
WebSocket consumers for the chat application.

This module implements the WebSocket consumer for real-time chat functionality,
handling connection management, event delivery, and integration with the
chat service layer.

Consumers:
    ChatConsumer: One socket per user session, covering all conversations

Authentication:
    Users are authenticated via JWT (query string ?token= or the
    "jwt, <token>" subprotocol). JWTAuthMiddleware attaches the user to
    self.scope["user"]; unauthenticated sockets are closed with 4001
    before accept.

Channel Groups:
    Each user has a channel group named "chat_user_{user_id}". ChatNotifier
    pushes events for that user to the group; every connected session of
    the user receives them.

Presence:
    Opening the first socket marks the user online and closing the last one
    marks them offline (PresenceService). Pings keep the entry alive.

Message Types (from client):
    - message:   {"type": "message", "chat_id": 1, "content": "Hello!"}
    - typing:    {"type": "typing", "chat_id": 1, "is_typing": true}
    - read:      {"type": "read", "message_id": 9} or {"type": "read", "chat_id": 1}
    - delivered: {"type": "delivered", "message_id": 9}
    - ping:      {"type": "ping"}

Message Types (to client):
    - message:   New message (also echoed to the sender as acknowledgement)
    - read:      A message you sent was read
    - delivered: A message you sent reached the recipient
    - typing:    Counterparty typing indicator
    - presence:  A counterparty came online or went offline
    - pong:      Reply to ping
    - error:     {"type": "error", "message": ..., "errorCode": ...}
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from chat.authorization import ChatAuthorizationService
from chat.constants import REALTIME_CONFIG, ErrorCode, user_group_name
from chat.notifier import ChatNotifier
from chat.services import MessageService, PresenceService

logger = logging.getLogger(__name__)

INVALID_FRAME = "INVALID_FRAME"


def coerce_id(value) -> int | None:
    """Return value as a positive int id, or None when it is not one."""
    if isinstance(value, bool):
        return None
    try:
        value = int(value)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for real-time chat functionality.

    Handles:
        - Connection authentication
        - Joining/leaving the per-user channel group
        - Sending messages over the socket
        - Typing indicators
        - Read and delivery acknowledgements

    Attributes:
        user: Authenticated user (after connect)
        group_name: Channel layer group of the user
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.group_name: str | None = None

    async def connect(self):
        """
        Handle WebSocket connection.

        Rejects unauthenticated users with close code 4001 before accept.
        On success, joins the user's channel group and accepts the connection.
        """
        user = self.scope.get("user")

        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated chat websocket connection")
            await self.close(code=REALTIME_CONFIG.CLOSE_CODE_UNAUTHORIZED)
            return

        self.user = user
        self.group_name = user_group_name(user.id)

        await self.channel_layer.group_add(self.group_name, self.channel_name)

        # Echo the subprotocol back when the token came through it
        await self.accept(subprotocol=self.scope.get("auth_subprotocol"))
        await self._mark_online()
        logger.info(f"User {user.id} connected to chat websocket")

    async def disconnect(self, close_code):
        """
        Handle WebSocket disconnection.

        Leaves the channel group immediately; events for this session are
        not buffered.
        """
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            await self._mark_offline()
            logger.info(
                f"User {self.user.id} disconnected from chat websocket "
                f"(code={close_code})"
            )
            self.group_name = None

    # =========================================================================
    # Client frames
    # =========================================================================

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        """Decode a text frame, answering malformed input with an error frame."""
        if text_data is None:
            await self.send_error("Frames must be JSON text", INVALID_FRAME)
            return
        try:
            content = await self.decode_json(text_data)
        except ValueError:
            await self.send_error("Frame must be valid JSON", INVALID_FRAME)
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        """
        Dispatch an incoming frame by its "type".

        Args:
            content: Parsed JSON frame from client
        """
        if not isinstance(content, dict):
            await self.send_error("Frame must be a JSON object", INVALID_FRAME)
            return

        handlers = {
            "message": self._handle_message,
            "typing": self._handle_typing,
            "read": self._handle_read,
            "delivered": self._handle_delivered,
            "ping": self._handle_ping,
        }
        frame_type = content.get("type")
        handler = handlers.get(frame_type)
        if handler is None:
            await self.send_error(f"Unknown message type: {frame_type}", INVALID_FRAME)
            return

        await handler(content)

    async def _handle_message(self, content):
        """Send a message through the service layer and acknowledge it."""
        chat_id = coerce_id(content.get("chat_id"))
        if chat_id is None:
            await self.send_error("chat_id is required", INVALID_FRAME)
            return

        result = await self._send_message(chat_id, content.get("content"))
        if not result.success:
            await self.send_error(result.error, result.error_code)
            return

        await self.send_json(
            {"type": "message", "chat_id": chat_id, "message": result.data}
        )

    async def _handle_typing(self, content):
        chat_id = coerce_id(content.get("chat_id"))
        if chat_id is None:
            await self.send_error("chat_id is required", INVALID_FRAME)
            return

        sent = await self._relay_typing(chat_id, bool(content.get("is_typing", True)))
        if not sent:
            await self.send_error(
                "You are not a participant in this conversation",
                ErrorCode.NOT_PARTICIPANT,
            )

    async def _handle_read(self, content):
        """Mark one message, or a whole conversation, as read."""
        message_id = coerce_id(content.get("message_id"))
        chat_id = coerce_id(content.get("chat_id"))

        if message_id is not None:
            result = await self._mark_message_read(message_id)
        elif chat_id is not None:
            result = await self._mark_conversation_read(chat_id)
        else:
            await self.send_error("message_id or chat_id is required", INVALID_FRAME)
            return

        if not result.success:
            await self.send_error(result.error, result.error_code)

    async def _handle_delivered(self, content):
        message_id = coerce_id(content.get("message_id"))
        if message_id is None:
            await self.send_error("message_id is required", INVALID_FRAME)
            return

        result = await self._mark_message_delivered(message_id)
        if not result.success:
            await self.send_error(result.error, result.error_code)

    async def _handle_ping(self, content):
        await self._refresh_presence()
        await self.send_json({"type": "pong"})

    async def send_error(self, message: str, error_code: str | None = None):
        """Send an error frame to this session only."""
        frame = {"type": "error", "message": message}
        if error_code:
            frame["errorCode"] = error_code
        await self.send_json(frame)

    # =========================================================================
    # Channel layer events
    # =========================================================================

    async def chat_message(self, event):
        """Handle chat.message events from channel layer."""
        await self.send_json(event["payload"])

    async def chat_read(self, event):
        """Handle chat.read events from channel layer."""
        await self.send_json(event["payload"])

    async def chat_delivered(self, event):
        """Handle chat.delivered events from channel layer."""
        await self.send_json(event["payload"])

    async def chat_typing(self, event):
        """Handle chat.typing events from channel layer."""
        await self.send_json(event["payload"])

    async def chat_presence(self, event):
        """Handle chat.presence events from channel layer."""
        await self.send_json(event["payload"])

    # =========================================================================
    # Database access
    # =========================================================================

    @database_sync_to_async
    def _send_message(self, chat_id: int, content):
        """
        Send a message using MessageService.

        Returns the ServiceResult with the serialized message as data.
        """
        from chat.serializers import MessageSerializer

        result = MessageService.send_message(chat_id, self.user, content)
        if result.success:
            result.data = dict(MessageSerializer(result.data).data)
        return result

    @database_sync_to_async
    def _relay_typing(self, chat_id: int, is_typing: bool) -> bool:
        if not ChatAuthorizationService.is_conversation_participant(
            self.user, chat_id
        ):
            return False
        ChatNotifier.typing(chat_id, self.user.id, is_typing)
        return True

    @database_sync_to_async
    def _mark_message_read(self, message_id: int):
        return MessageService.mark_message_read(message_id, self.user)

    @database_sync_to_async
    def _mark_conversation_read(self, chat_id: int):
        return MessageService.mark_conversation_read(chat_id, self.user)

    @database_sync_to_async
    def _mark_message_delivered(self, message_id: int):
        return MessageService.mark_message_delivered(message_id, self.user)

    @database_sync_to_async
    def _mark_online(self):
        PresenceService.mark_online(self.user.id)

    @database_sync_to_async
    def _mark_offline(self):
        PresenceService.mark_offline(self.user.id)

    @database_sync_to_async
    def _refresh_presence(self):
        PresenceService.refresh(self.user.id)
