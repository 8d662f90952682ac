"""
Server-side realtime notifier.

Pushes chat events to the per-user channel layer groups joined by
ChatConsumer. Message and read-state changes are pushed from
transaction.on_commit callbacks, so nothing is pushed for work that was
rolled back. Typing and presence carry no database state and go out at once.

Event types (channel layer "type" -> JSON frame "type"):
    chat.message   -> message    {"type", "chat_id", "message"}
    chat.read      -> read       {"type", "chat_id", "message_id", "reader_id"}
    chat.delivered -> delivered  {"type", "chat_id", "message_id"}
    chat.typing    -> typing     {"type", "chat_id", "user_id", "is_typing"}
    chat.presence  -> presence   {"type", "user_id", "is_online", "last_seen"}

Delivery is at-most-once to sessions connected at push time. Channel layer
failures are logged and swallowed: the database is the source of truth and
clients catch up through the REST history.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.authorization import ChatAuthorizationService
from chat.constants import user_group_name

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

    from chat.models import Message

logger = logging.getLogger(__name__)


class ChatNotifier:
    """Stateless helper around the channel layer."""

    @classmethod
    def _send(cls, user_ids, event: dict[str, Any]) -> None:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            logger.warning("No channel layer configured, dropping chat event")
            return

        for user_id in user_ids:
            try:
                async_to_sync(channel_layer.group_send)(user_group_name(user_id), event)
            except Exception:
                logger.warning(
                    f"Failed to push {event['type']} event to user {user_id}",
                    exc_info=True,
                )

    @classmethod
    def message_created(cls, message: Message) -> None:
        """Push a new message to every participant except the sender."""
        from chat.serializers import MessageSerializer

        recipients = ChatAuthorizationService.get_recipient_ids(message)
        payload = {
            "type": "message",
            "chat_id": message.conversation_id,
            "message": dict(MessageSerializer(message).data),
        }
        cls._send(recipients, {"type": "chat.message", "payload": payload})
        logger.debug(f"Pushed message {message.id} to users {recipients}")

    @classmethod
    def message_read(cls, message: Message, reader_id: int) -> None:
        """Tell the sender that ``reader_id`` has read the message."""
        payload = {
            "type": "read",
            "chat_id": message.conversation_id,
            "message_id": message.id,
            "reader_id": reader_id,
        }
        cls._send([message.sender_id], {"type": "chat.read", "payload": payload})

    @classmethod
    def message_delivered(cls, message: Message) -> None:
        """Tell the sender that the message reached the recipient's client."""
        payload = {
            "type": "delivered",
            "chat_id": message.conversation_id,
            "message_id": message.id,
        }
        cls._send([message.sender_id], {"type": "chat.delivered", "payload": payload})

    @classmethod
    def typing(cls, conversation_id: int, user_id: int, is_typing: bool) -> None:
        """Relay a typing indicator to the other participants."""
        recipients = [
            participant_id
            for participant_id in ChatAuthorizationService.get_participant_ids(
                conversation_id
            )
            if participant_id != user_id
        ]
        payload = {
            "type": "typing",
            "chat_id": conversation_id,
            "user_id": user_id,
            "is_typing": is_typing,
        }
        cls._send(recipients, {"type": "chat.typing", "payload": payload})

    @classmethod
    def presence_changed(
        cls,
        user_id: int,
        is_online: bool,
        last_seen: datetime | None,
        recipient_ids,
    ) -> None:
        """Tell ``recipient_ids`` that ``user_id`` came online or went offline."""
        payload = {
            "type": "presence",
            "user_id": user_id,
            "is_online": is_online,
            "last_seen": last_seen.isoformat() if last_seen else None,
        }
        cls._send(recipient_ids, {"type": "chat.presence", "payload": payload})
