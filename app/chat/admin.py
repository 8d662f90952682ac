"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management (with participants inline)
- Message moderation
"""

from django.contrib import admin

from chat.models import Conversation, ConversationPair, Message, Participant


class ParticipantInline(admin.TabularInline):
    """Inline display of participants in conversation admin."""

    model = Participant
    extra = 0
    readonly_fields = ["created_at"]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "property", "last_message_at", "created_at"]
    list_filter = ["created_at"]
    search_fields = ["title", "id", "participants__user__email"]
    readonly_fields = ["created_at", "updated_at", "last_message_at"]
    raw_id_fields = ["property"]
    inlines = [ParticipantInline]
    ordering = ["-created_at"]


@admin.register(ConversationPair)
class ConversationPairAdmin(admin.ModelAdmin):
    list_display = ["conversation", "user_lower", "user_higher", "property"]
    raw_id_fields = ["conversation", "user_lower", "user_higher", "property"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "status",
        "content_preview",
        "created_at",
        "read_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["created_at", "updated_at", "delivered_at", "read_at"]
    raw_id_fields = ["conversation", "sender"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated content for list display."""
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content
