"""
Chat system models.

This module defines the data models for user/agent conversations:

Models:
    Conversation: Container for messages, optionally scoped to a property
    ConversationPair: Helper enforcing one conversation per user pair and property
    Participant: Membership of a user in a conversation, tagged with a role
    Message: Individual message with a forward-only delivery status

Design Decisions:
    - Conversations are strictly two-party; membership never changes
    - Uniqueness of (user pair, property) lives in ConversationPair so the
      database, not the application, resolves concurrent creates
    - Read state is a per-message status; with two parties the recipient is
      always the participant who is not the sender
    - Messages are immutable; (created_at, id) is the total order
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from core.models import BaseModel

if TYPE_CHECKING:
    from authentication.models import User


class ParticipantRole(models.TextChoices):
    """
    Role of a participant within a conversation.

    USER: The marketplace user who opened the conversation
    AGENT: The agent being contacted
    """

    USER = "user", "User"
    AGENT = "agent", "Agent"


class MessageStatus(models.TextChoices):
    """
    Delivery status of a message.

    Transitions only move forward: SENT -> DELIVERED -> READ
    (SENT -> READ is allowed when the read arrives first).
    """

    SENT = "sent", "Sent"
    DELIVERED = "delivered", "Delivered"
    READ = "read", "Read"


STATUS_RANK = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


class Conversation(BaseModel):
    """
    A conversation between a user and an agent.

    Fields:
        title: "Inquiry about <property title>" for property chats, else empty
        property: Listing the conversation is about (nullable)
        last_message_at: Timestamp of most recent message (for sorting)

    Relationships:
        participants: The two Participant records
        messages: All Message records
        pair: ConversationPair holding the uniqueness key
    """

    title = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Display title (empty for conversations without a property)",
    )

    property = models.ForeignKey(
        "properties.Property",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="conversations",
        help_text="Property this conversation is about",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        indexes = [
            models.Index(
                fields=["-last_message_at", "-created_at"],
                name="chat_conv_activity_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        if self.title:
            return f"Conversation({self.pk}): {self.title}"
        return f"Conversation({self.pk})"

    def get_participant_for_user(self, user: User) -> Participant | None:
        """Return the participation record of ``user``, if any."""
        return self.participants.filter(user=user).first()

    def get_other_participant(self, user: User) -> Participant | None:
        """Return the participation record of the counterparty of ``user``."""
        return self.participants.exclude(user=user).select_related("user").first()


class ConversationPair(models.Model):
    """
    Enforces uniqueness of conversations per user pair and property.

    Users are stored in canonical order (lower user id first) so the pair is
    the same regardless of who initiates the conversation.

    Fields:
        conversation: The conversation (OneToOne, serves as PK)
        user_lower: User with lower ID
        user_higher: User with higher ID
        property: Property scope (NULL for general conversations)

    Constraints:
        - UniqueConstraint(user_lower, user_higher, property): one per scope
        - UniqueConstraint(user_lower, user_higher) WHERE property IS NULL:
          NULLs are distinct in unique indexes, so the unscoped case needs
          its own partial constraint
        - CheckConstraint(user_lower_id < user_higher_id): canonical order
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="pair",
        help_text="The conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this conversation pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this conversation pair",
    )

    property = models.ForeignKey(
        "properties.Property",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Property scope of the conversation",
    )

    class Meta:
        db_table = "chat_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher", "property"],
                name="unique_conversation_pair_property",
            ),
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                condition=Q(property__isnull=True),
                name="unique_conversation_pair_general",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="pair_user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        return (
            f"Pair({self.user_lower_id}, {self.user_higher_id}, "
            f"property={self.property_id})"
        )

    @staticmethod
    def canonical(user_a_id: int, user_b_id: int) -> tuple[int, int]:
        """Return the two user ids as (lower, higher)."""
        return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


class Participant(BaseModel):
    """
    Membership of a user in a conversation.

    Fields:
        conversation: Conversation this participation belongs to
        user: Participating user
        role: USER for the requester, AGENT for the counterparty

    Constraints:
        - UniqueConstraint(conversation, user)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this participation belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="User participating in the conversation",
    )

    role = models.CharField(
        max_length=10,
        choices=ParticipantRole.choices,
        db_index=True,
        help_text="Role of the user in this conversation",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["user", "conversation"],
                name="chat_part_user_conv_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_participant",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        return f"Participant: {self.user_id} in {self.conversation_id} ({self.role})"


class Message(BaseModel):
    """
    A message within a conversation.

    Fields:
        conversation: Conversation this message belongs to
        sender: Participant who sent the message
        content: Message text (1..1000 characters, immutable)
        status: sent, delivered or read
        delivered_at: When the recipient's client acknowledged delivery
        read_at: When the recipient read the message
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    content = models.TextField(help_text="Message text")

    status = models.CharField(
        max_length=10,
        choices=MessageStatus.choices,
        default=MessageStatus.SENT,
        db_index=True,
        help_text="Delivery status (forward-only)",
    )

    delivered_at = models.DateTimeField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            # Messages in a conversation (pagination)
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="chat_msg_conv_order_idx",
            ),
            # Unread counters
            models.Index(
                fields=["conversation", "status", "sender"],
                name="chat_msg_conv_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        content_preview = (
            self.content[:50] + "..." if len(self.content) > 50 else self.content
        )
        return f"User {self.sender_id}: {content_preview}"

    @property
    def is_read(self) -> bool:
        return self.status == MessageStatus.READ

    def can_advance_to(self, status: str) -> bool:
        """Check whether moving to ``status`` is a forward transition."""
        return STATUS_RANK[MessageStatus(status)] > STATUS_RANK[MessageStatus(self.status)]
