"""
Chat system service layer.

This module provides the business logic for the chat system, encapsulating
all operations on conversations and messages.

Services:
    ConversationService: Conversation resolution, listing, detail and deletion
    MessageService: Send, history, read/delivered state and unread counters
    PresenceService: Online/offline state of chat users

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure() with an ErrorCode
    - Unexpected failures raise exceptions
    - Every check happens before the first write; every mutation runs in
      one transaction
    - Realtime pushes run in transaction.on_commit callbacks only

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.create_or_get(user, agent.id, property_id=7)
    if result.success:
        conversation, created = result.data

    result = MessageService.send_message(conversation.id, user, "Is it available?")
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.db.models import Count, F, IntegerField, OuterRef, Prefetch, Q, Subquery
from django.db.models.functions import Coalesce
from django.utils import timezone

from chat.authorization import (
    ChatAuthorizationService,
    require_conversation_participant,
    require_message_access,
)
from chat.constants import MESSAGE_CONFIG, PRESENCE_CONFIG, ErrorCode
from chat.models import (
    Conversation,
    ConversationPair,
    Message,
    MessageStatus,
    Participant,
    ParticipantRole,
)
from chat.notifier import ChatNotifier
from core.services import BaseService, ServiceResult
from properties.models import Property

if TYPE_CHECKING:
    from datetime import datetime

    from django.db.models import QuerySet

    from authentication.models import User

logger = logging.getLogger(__name__)


def _unread_filter(queryset, user: User):
    """Restrict a message queryset to messages ``user`` has not read."""
    return queryset.exclude(sender=user).exclude(status=MessageStatus.READ)


class ConversationService(BaseService):
    """
    Service for conversation lifecycle operations.

    Methods:
        create_or_get: Resolve the conversation for a user pair and property
        list_for_user: Paginated conversations of a user with previews
        get_for_participant: Conversation detail for a participant
        delete_conversation: Hard delete a conversation for both participants
    """

    @classmethod
    def _find_existing(
        cls,
        user_lower_id: int,
        user_higher_id: int,
        property_id: int | None,
    ) -> Conversation | None:
        pair = (
            ConversationPair.objects.select_related("conversation")
            .filter(
                user_lower_id=user_lower_id,
                user_higher_id=user_higher_id,
                property_id=property_id,
            )
            .first()
        )
        return pair.conversation if pair else None

    @classmethod
    def create_or_get(
        cls,
        requester: User,
        counterparty_id: int,
        property_id: int | None = None,
        title: str | None = None,
    ) -> ServiceResult[tuple[Conversation, bool]]:
        """
        Create or retrieve the conversation between two users about a property.

        Conversations are unique per (unordered user pair, property). If one
        already exists it is returned unchanged, whoever initiated it.

        A new conversation takes ``title`` when one is given, otherwise
        "Inquiry about <property title>" for property inquiries.

        Implementation:
            1. Validate users are different, counterparty and property exist
            2. Canonicalize order (lower user id first)
            3. Look up existing ConversationPair
            4. If not found, create conversation, pair and both participants
               in one transaction
            5. If a concurrent request won the insert, re-fetch its row

        Returns:
            ServiceResult with (conversation, created)

        Error codes:
            SAME_USER: Cannot start a conversation with yourself
            COUNTERPARTY_NOT_FOUND: Counterparty missing or inactive
            PROPERTY_NOT_FOUND: property_id given but unknown
        """
        if requester.id == counterparty_id:
            return ServiceResult.failure(
                "You cannot start a conversation with yourself",
                error_code=ErrorCode.SAME_USER,
            )

        counterparty = (
            get_user_model()
            .objects.filter(pk=counterparty_id, is_active=True)
            .first()
        )
        if counterparty is None:
            return ServiceResult.failure(
                "Agent not found",
                error_code=ErrorCode.COUNTERPARTY_NOT_FOUND,
            )

        listing = None
        if property_id is not None:
            listing = Property.objects.filter(pk=property_id).first()
            if listing is None:
                return ServiceResult.failure(
                    "Property not found",
                    error_code=ErrorCode.PROPERTY_NOT_FOUND,
                )

        user_lower_id, user_higher_id = ConversationPair.canonical(
            requester.id, counterparty.id
        )

        existing = cls._find_existing(user_lower_id, user_higher_id, property_id)
        if existing is not None:
            cls.get_logger().debug(
                f"Found existing conversation {existing.id} between users "
                f"{user_lower_id} and {user_higher_id} (property={property_id})"
            )
            return ServiceResult.success((existing, False))

        try:
            with cls.atomic():
                conversation = Conversation.objects.create(
                    title=title or (f"Inquiry about {listing.title}" if listing else ""),
                    property=listing,
                )
                ConversationPair.objects.create(
                    conversation=conversation,
                    user_lower_id=user_lower_id,
                    user_higher_id=user_higher_id,
                    property=listing,
                )
                Participant.objects.bulk_create(
                    [
                        Participant(
                            conversation=conversation,
                            user=requester,
                            role=ParticipantRole.USER,
                        ),
                        Participant(
                            conversation=conversation,
                            user=counterparty,
                            role=ParticipantRole.AGENT,
                        ),
                    ]
                )
        except IntegrityError:
            # Lost a race with a concurrent create for the same key
            existing = cls._find_existing(user_lower_id, user_higher_id, property_id)
            if existing is None:
                raise
            cls.get_logger().info(
                f"Concurrent create resolved to conversation {existing.id}"
            )
            return ServiceResult.success((existing, False))

        cls.get_logger().info(
            f"Created conversation {conversation.id} between users "
            f"{requester.id} and {counterparty.id} (property={property_id})"
        )
        return ServiceResult.success((conversation, True))

    @classmethod
    def _with_summary(cls, queryset, user: User):
        """Annotate conversations with unread count and last message id."""
        unread = (
            _unread_filter(Message.objects.filter(conversation=OuterRef("pk")), user)
            .order_by()
            .values("conversation")
            .annotate(total=Count("id"))
            .values("total")
        )
        last_message = Message.objects.filter(conversation=OuterRef("pk")).order_by(
            "-created_at", "-id"
        )
        return queryset.select_related("property").prefetch_related(
            Prefetch(
                "participants",
                queryset=Participant.objects.select_related("user"),
            )
        ).annotate(
            unread_count=Coalesce(
                Subquery(unread, output_field=IntegerField()), 0
            ),
            last_message_id=Subquery(last_message.values("id")[:1]),
        )

    @classmethod
    def attach_last_messages(cls, conversations: list[Conversation]) -> None:
        """Set ``last_message`` on conversations annotated by list_for_user."""
        ids = [c.last_message_id for c in conversations if c.last_message_id]
        messages = Message.objects.select_related("sender").in_bulk(ids)
        for conversation in conversations:
            conversation.last_message = messages.get(conversation.last_message_id)

    @classmethod
    def list_for_user(cls, user: User) -> ServiceResult[QuerySet[Conversation]]:
        """
        List conversations the user participates in, most recent activity first.

        Conversations without messages sort after every active one. Rows
        carry an ``unread_count`` annotation and prefetched participants;
        call attach_last_messages on the page that is actually rendered.

        Returns:
            ServiceResult with the ordered queryset
        """
        base = Conversation.objects.filter(participants__user=user)
        ordered = cls._with_summary(base, user).order_by(
            F("last_message_at").desc(nulls_last=True),
            "-created_at",
            "-id",
        )
        return ServiceResult.success(ordered)

    @classmethod
    @require_conversation_participant()
    def get_for_participant(
        cls,
        conversation_id: int,
        user: User,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Get conversation detail for a participant.

        Error codes:
            CONVERSATION_NOT_FOUND: Conversation does not exist
            NOT_PARTICIPANT: User is not in this conversation
        """
        conversation = cls._with_summary(
            Conversation.objects.filter(pk=_conversation.pk), user
        ).get()
        cls.attach_last_messages([conversation])
        return ServiceResult.success(conversation)

    @classmethod
    @require_conversation_participant()
    def delete_conversation(
        cls,
        conversation_id: int,
        user: User,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[None]:
        """
        Delete a conversation for both participants.

        The conversation, its pair row, participants and messages are
        removed. Afterwards every lookup of the conversation is a 404.

        Error codes:
            CONVERSATION_NOT_FOUND: Conversation does not exist
            NOT_PARTICIPANT: User is not in this conversation
        """
        with cls.atomic():
            _conversation.delete()

        cls.get_logger().info(
            f"User {user.id} deleted conversation {conversation_id}"
        )
        return ServiceResult.success(None)


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        send_message: Send a text message
        get_messages: Paginated history, newest page first
        mark_message_read: Mark one received message as read
        mark_message_delivered: Record a delivery acknowledgement
        mark_conversation_read: Mark every received message in a conversation
        get_unread_count: Unread messages across all conversations
        get_conversation_unread_count: Unread messages in one conversation
    """

    @classmethod
    def validate_content(cls, content) -> ServiceResult[str]:
        """
        Trim and validate message content.

        Error codes:
            EMPTY_CONTENT: Content is empty after trimming
            CONTENT_TOO_LONG: More than MESSAGE_CONFIG.MAX_CONTENT_LENGTH characters
        """
        content = content.strip() if isinstance(content, str) else ""
        if len(content) < MESSAGE_CONFIG.MIN_CONTENT_LENGTH:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code=ErrorCode.EMPTY_CONTENT,
                errors={"content": ["This field may not be blank."]},
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message content cannot exceed "
                f"{MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code=ErrorCode.CONTENT_TOO_LONG,
                errors={
                    "content": [
                        f"Ensure this field has no more than "
                        f"{MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters."
                    ]
                },
            )
        return ServiceResult.success(content)

    @classmethod
    @require_conversation_participant(user_param="sender")
    def send_message(
        cls,
        conversation_id: int,
        sender: User,
        content: str,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[Message]:
        """
        Send a text message to a conversation.

        The message and the conversation's activity timestamps are written in
        one transaction; the other participant is notified after commit.

        Returns:
            ServiceResult with new Message

        Error codes:
            CONVERSATION_NOT_FOUND: Conversation does not exist
            NOT_PARTICIPANT: Sender is not in this conversation
            EMPTY_CONTENT / CONTENT_TOO_LONG: Invalid content
        """
        validation = cls.validate_content(content)
        if not validation:
            return validation

        conversation = _conversation
        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                content=validation.data,
            )

            # Only move forward: a concurrent send may already hold a later time
            Conversation.objects.filter(pk=conversation.pk).filter(
                Q(last_message_at__isnull=True)
                | Q(last_message_at__lt=message.created_at)
            ).update(last_message_at=message.created_at, updated_at=timezone.now())

            transaction.on_commit(partial(ChatNotifier.message_created, message))

        cls.get_logger().debug(
            f"User {sender.id} sent message {message.id} "
            f"to conversation {conversation.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    @require_conversation_participant()
    def get_messages(
        cls,
        conversation_id: int,
        user: User,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[QuerySet[Message]]:
        """
        Get a conversation's history, newest first.

        Paginate with chat.pagination.MessageHistoryPagination, which cuts
        pages from the newest end and puts each page in chronological order.

        Returns:
            ServiceResult with the newest-first queryset
        """
        return ServiceResult.success(
            _conversation.messages.select_related("sender").order_by(
                "-created_at", "-id"
            )
        )

    @classmethod
    @require_message_access()
    def mark_message_read(
        cls,
        message_id: int,
        user: User,
        _message: Message | None = None,
    ) -> ServiceResult[Message]:
        """
        Mark a received message as read.

        Already-read messages are returned unchanged (no notification).

        Error codes:
            MESSAGE_NOT_FOUND: Message does not exist
            NOT_PARTICIPANT: User is not in the message's conversation
            IS_SENDER: Senders cannot mark their own messages as read
        """
        message = _message
        if message.sender_id == user.id:
            return ServiceResult.failure(
                "You cannot mark your own message as read",
                error_code=ErrorCode.IS_SENDER,
            )

        if message.status == MessageStatus.READ:
            return ServiceResult.success(message)

        now = timezone.now()
        with cls.atomic():
            updated = (
                Message.objects.filter(pk=message.pk)
                .exclude(status=MessageStatus.READ)
                .update(status=MessageStatus.READ, read_at=now, updated_at=now)
            )
            if updated:
                transaction.on_commit(
                    partial(ChatNotifier.message_read, message, user.id)
                )

        message.refresh_from_db(fields=["status", "read_at", "updated_at"])
        if updated:
            cls.get_logger().debug(f"User {user.id} read message {message.id}")
        return ServiceResult.success(message)

    @classmethod
    @require_message_access()
    def mark_message_delivered(
        cls,
        message_id: int,
        user: User,
        _message: Message | None = None,
    ) -> ServiceResult[Message]:
        """
        Record that a message reached the recipient's client.

        Only moves SENT to DELIVERED; delivered or read messages are left as is.

        Error codes:
            MESSAGE_NOT_FOUND: Message does not exist
            NOT_PARTICIPANT: User is not in the message's conversation
            IS_SENDER: Senders do not acknowledge their own messages
        """
        message = _message
        if message.sender_id == user.id:
            return ServiceResult.failure(
                "You cannot acknowledge your own message",
                error_code=ErrorCode.IS_SENDER,
            )

        if not message.can_advance_to(MessageStatus.DELIVERED):
            return ServiceResult.success(message)

        now = timezone.now()
        with cls.atomic():
            updated = Message.objects.filter(
                pk=message.pk, status=MessageStatus.SENT
            ).update(status=MessageStatus.DELIVERED, delivered_at=now, updated_at=now)
            if updated:
                transaction.on_commit(partial(ChatNotifier.message_delivered, message))

        message.refresh_from_db(fields=["status", "delivered_at", "updated_at"])
        return ServiceResult.success(message)

    @classmethod
    @require_conversation_participant()
    def mark_conversation_read(
        cls,
        conversation_id: int,
        user: User,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[int]:
        """
        Mark every received, unread message in a conversation as read.

        Returns:
            ServiceResult with the number of messages that changed state
        """
        now = timezone.now()
        with cls.atomic():
            unread = list(
                _unread_filter(_conversation.messages.all(), user).select_for_update()
            )
            updated = Message.objects.filter(
                pk__in=[message.pk for message in unread]
            ).update(status=MessageStatus.READ, read_at=now, updated_at=now)

            for message in unread:
                transaction.on_commit(
                    partial(ChatNotifier.message_read, message, user.id)
                )

        if updated:
            cls.get_logger().debug(
                f"User {user.id} read {updated} messages in conversation "
                f"{conversation_id}"
            )
        return ServiceResult.success(updated)

    @classmethod
    def get_unread_count(cls, user: User) -> int:
        """
        Count unread messages for a user across all conversations.

        Unread messages are those in the user's conversations, not sent by
        the user, whose status is not READ.
        """
        return _unread_filter(
            Message.objects.filter(conversation__participants__user=user), user
        ).count()

    @classmethod
    def get_conversation_unread_count(
        cls,
        conversation: Conversation,
        user: User,
    ) -> int:
        """Count unread messages for a user in one conversation."""
        return _unread_filter(conversation.messages.all(), user).count()


# =============================================================================
# Presence Service
# =============================================================================


class PresenceService(BaseService):
    """
    Cache-backed online/offline tracking.

    A user is online while at least one chat socket of theirs is open. Each
    socket increments a per-user counter on connect and decrements it on
    disconnect; the transition 0 -> 1 and back to 0 is what counterparties
    are told about. When the last socket closes the time is kept as
    "last seen".

    Design Decisions:
        - Cache only (django-redis in deployment), nothing in the database
        - The counter expires unless refreshed by client pings, so sockets
          lost with a crashed worker do not keep a user online forever
        - Pushes go to every user sharing a conversation with the user

    Usage:
        from chat.services import PresenceService

        PresenceService.mark_online(user.id)
        PresenceService.get_presence(user.id)
        # {"isOnline": True, "lastSeen": None}
    """

    @staticmethod
    def _connections_key(user_id) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_CONNECTIONS}:{user_id}"

    @staticmethod
    def _last_seen_key(user_id) -> str:
        return f"{PRESENCE_CONFIG.KEY_PREFIX_LAST_SEEN}:{user_id}"

    @classmethod
    def mark_online(cls, user_id: int) -> bool:
        """
        Record a newly opened socket for the user.

        Returns:
            True when the user went from offline to online
        """
        key = cls._connections_key(user_id)
        ttl = PRESENCE_CONFIG.CONNECTIONS_TTL_SECONDS

        cache.add(key, 0, timeout=ttl)
        try:
            count = cache.incr(key)
        except ValueError:
            # Expired between add() and incr()
            cache.set(key, 1, timeout=ttl)
            count = 1
        cache.touch(key, ttl)

        if count == 1:
            cls._broadcast(user_id, True, None)
            cls.get_logger().debug(f"User {user_id} is online")
            return True
        return False

    @classmethod
    def mark_offline(cls, user_id: int) -> bool:
        """
        Record a closed socket for the user.

        Returns:
            True when the last socket closed and the user went offline
        """
        key = cls._connections_key(user_id)
        try:
            count = cache.decr(key)
        except ValueError:
            count = 0
        if count and count > 0:
            return False

        cache.delete(key)
        last_seen = timezone.now()
        cache.set(
            cls._last_seen_key(user_id),
            last_seen.isoformat(),
            timeout=PRESENCE_CONFIG.LAST_SEEN_TTL_SECONDS,
        )
        cls._broadcast(user_id, False, last_seen)
        cls.get_logger().debug(f"User {user_id} is offline")
        return True

    @classmethod
    def refresh(cls, user_id: int) -> None:
        """Keep the online entry of a user with open sockets from expiring."""
        key = cls._connections_key(user_id)
        ttl = PRESENCE_CONFIG.CONNECTIONS_TTL_SECONDS
        if not cache.touch(key, ttl):
            cache.add(key, 1, timeout=ttl)

    @classmethod
    def is_online(cls, user_id: int) -> bool:
        return bool(cache.get(cls._connections_key(user_id)))

    @classmethod
    def get_presence(cls, user_id: int) -> dict:
        """Return ``{"isOnline": bool, "lastSeen": str | None}`` for a user."""
        if cls.is_online(user_id):
            return {"isOnline": True, "lastSeen": None}
        return {"isOnline": False, "lastSeen": cache.get(cls._last_seen_key(user_id))}

    @classmethod
    def _broadcast(
        cls, user_id: int, is_online: bool, last_seen: datetime | None
    ) -> None:
        recipients = ChatAuthorizationService.get_counterparty_ids(user_id)
        ChatNotifier.presence_changed(user_id, is_online, last_seen, recipients)
