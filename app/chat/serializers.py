"""
Serializers for chat API.

This module provides serializers for the chat system:
- Message serializers (read, preview, create)
- Conversation serializers (list/detail, create)

Serializer Hierarchy:
    MessageSerializer: Full message as returned by history, send and push
    MessagePreviewSerializer: Last message shown in conversation lists
    MessageCreateSerializer: Send new message ({content})

    ParticipantSerializer: Participant with public user info
    PropertySummarySerializer: Property card shown with a conversation
    ConversationSerializer: List and detail view with computed fields
    ConversationCreateSerializer: Create-or-get ({agentId, propertyId?, title?})

Design Decisions:
    - Read and write serializers are separate for clarity
    - Output keys are camelCase
    - Content length limits are enforced by MessageService so REST and
      websocket sends share one rule set
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSummarySerializer
from chat.constants import CONVERSATION_CONFIG, MESSAGE_CONFIG
from chat.models import Conversation, Message, Participant
from properties.models import Property


# =============================================================================
# Message Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """
    Message with sender summary and read state.

    Example:
        {
            "id": 12,
            "chatId": 3,
            "senderId": 5,
            "content": "Is the flat still available?",
            "status": "sent",
            "isRead": false,
            "createdAt": "2026-10-17T09:12:00Z",
            "readAt": null,
            "sender": {"id": 5, "firstName": "Ama", "lastName": "K", "role": "user"}
        }
    """

    chatId = serializers.IntegerField(source="conversation_id", read_only=True)
    senderId = serializers.IntegerField(source="sender_id", read_only=True)
    isRead = serializers.BooleanField(source="is_read", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    readAt = serializers.DateTimeField(source="read_at", read_only=True)
    sender = UserSummarySerializer(read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "chatId",
            "senderId",
            "content",
            "status",
            "isRead",
            "createdAt",
            "readAt",
            "sender",
        ]
        read_only_fields = fields


class MessagePreviewSerializer(serializers.ModelSerializer):
    """
    Minimal message serializer for conversation list preview.

    Content is truncated to MESSAGE_CONFIG.PREVIEW_LENGTH characters.
    """

    senderId = serializers.IntegerField(source="sender_id", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    content = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = ["id", "senderId", "content", "status", "createdAt"]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        limit = MESSAGE_CONFIG.PREVIEW_LENGTH
        if len(obj.content) <= limit:
            return obj.content
        return obj.content[:limit] + "..."


class MessageCreateSerializer(serializers.Serializer):
    """
    Serializer for sending a new message.

    Only checks presence and type; trimming and length rules live in
    MessageService.validate_content.
    """

    content = serializers.CharField(
        trim_whitespace=False,
        allow_blank=True,
        help_text=f"Message text (1-{MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters)",
    )


# =============================================================================
# Conversation Serializers
# =============================================================================


class ParticipantSerializer(serializers.ModelSerializer):
    """Participant with public user info."""

    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = Participant
        fields = ["user", "role"]
        read_only_fields = fields


class PropertySummarySerializer(serializers.ModelSerializer):
    """Property card shown next to a conversation."""

    imageUrl = serializers.CharField(source="image_url", read_only=True)

    class Meta:
        model = Property
        fields = ["id", "title", "location", "price", "imageUrl"]
        read_only_fields = fields


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation for list and detail views.

    Expects the instance to come from ConversationService (unread_count
    annotation, last_message attribute, prefetched participants) and the
    requesting user in context["request"].
    """

    propertyId = serializers.IntegerField(source="property_id", read_only=True)
    property = PropertySummarySerializer(read_only=True)
    participants = ParticipantSerializer(many=True, read_only=True)
    counterparty = serializers.SerializerMethodField()
    lastMessage = serializers.SerializerMethodField()
    lastMessageAt = serializers.DateTimeField(source="last_message_at", read_only=True)
    unreadCount = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Conversation
        fields = [
            "id",
            "title",
            "propertyId",
            "property",
            "participants",
            "counterparty",
            "lastMessage",
            "lastMessageAt",
            "unreadCount",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields

    def _request_user_id(self) -> int | None:
        request = self.context.get("request")
        return getattr(getattr(request, "user", None), "id", None)

    def get_counterparty(self, obj: Conversation) -> dict | None:
        """Public summary of the other participant with online state."""
        from chat.services import PresenceService

        user_id = self._request_user_id()
        for participant in obj.participants.all():
            if participant.user_id != user_id:
                data = dict(UserSummarySerializer(participant.user).data)
                data.update(PresenceService.get_presence(participant.user_id))
                return data
        return None

    def get_lastMessage(self, obj: Conversation) -> dict | None:
        last_message = getattr(obj, "last_message", None)
        if last_message is None:
            return None
        return MessagePreviewSerializer(last_message).data

    def get_unreadCount(self, obj: Conversation) -> int:
        unread_count = getattr(obj, "unread_count", None)
        if unread_count is not None:
            return unread_count

        from chat.services import MessageService

        request = self.context.get("request")
        if request is None:
            return 0
        return MessageService.get_conversation_unread_count(obj, request.user)


class ConversationCreateSerializer(serializers.Serializer):
    """
    Serializer for create-or-get.

    Request body:
        {"agentId": 7, "propertyId": 42, "title": "Viewing on Saturday?"}

    propertyId and title are optional. A blank title falls back to
    "Inquiry about <property title>". The title only applies when the
    conversation is created; an existing one keeps its own.
    """

    agentId = serializers.IntegerField(min_value=1)
    propertyId = serializers.IntegerField(
        min_value=1, required=False, allow_null=True
    )
    title = serializers.CharField(
        max_length=CONVERSATION_CONFIG.MAX_TITLE_LENGTH,
        required=False,
        allow_blank=True,
        allow_null=True,
    )
