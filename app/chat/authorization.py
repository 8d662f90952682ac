"""
Service-level authorization for chat operations.

This module provides centralized authorization checks for chat features.
HTTP views only require an authenticated user (IsAuthenticated); membership
is decided here and shared by the services, the notifier and the websocket
consumer.

Key Components:
    ChatAuthorizationService: Stateless service class with authorization methods
    require_conversation_participant: Decorator for conversation-level access
    require_message_access: Decorator for message-level access with injection

Error Codes:
    CONVERSATION_NOT_FOUND: Conversation does not exist
    MESSAGE_NOT_FOUND: Message does not exist
    NOT_PARTICIPANT: User is not a participant in the conversation

Existence is checked before membership, so a missing resource is always a
404 and an existing resource the caller cannot see is always a 403.

Usage:
    class MessageService(BaseService):
        @classmethod
        @require_message_access()
        def mark_message_read(cls, message_id, user, _message=None):
            # _message is injected by decorator
            ...
"""

from __future__ import annotations

import inspect
from functools import wraps
from typing import TYPE_CHECKING, Callable, TypeVar

from chat.constants import ErrorCode
from core.services import ServiceResult

if TYPE_CHECKING:
    from authentication.models import User
    from chat.models import Message


T = TypeVar("T")


class ChatAuthorizationService:
    """
    Stateless service providing authorization checks for chat operations.

    All methods are classmethods and can be called directly without instantiation.
    """

    @classmethod
    def is_conversation_participant(
        cls,
        user: "User",
        conversation_id: int,
    ) -> bool:
        """Check if user is a participant in the conversation."""
        from chat.models import Participant

        if user is None or not getattr(user, "is_authenticated", False):
            return False

        return Participant.objects.filter(
            conversation_id=conversation_id,
            user=user,
        ).exists()

    @classmethod
    def get_recipient_ids(cls, message: "Message") -> list[int]:
        """
        Get ids of the participants who receive ``message``.

        Conversations are two-party, so this is the single counterparty of
        the sender.
        """
        from chat.models import Participant

        return list(
            Participant.objects.filter(conversation_id=message.conversation_id)
            .exclude(user_id=message.sender_id)
            .values_list("user_id", flat=True)
        )

    @classmethod
    def get_participant_ids(cls, conversation_id: int) -> list[int]:
        """Get user ids of every participant in the conversation."""
        from chat.models import Participant

        return list(
            Participant.objects.filter(conversation_id=conversation_id).values_list(
                "user_id", flat=True
            )
        )

    @classmethod
    def get_counterparty_ids(cls, user_id: int) -> list[int]:
        """Get ids of every user who shares at least one conversation with ``user_id``."""
        from chat.models import Participant

        return list(
            Participant.objects.filter(conversation__participants__user_id=user_id)
            .exclude(user_id=user_id)
            .order_by()
            .values_list("user_id", flat=True)
            .distinct()
        )


def _bound_arguments(func: Callable, args: tuple, kwargs: dict) -> dict:
    """Map positional and keyword arguments to parameter names."""
    return inspect.signature(func).bind_partial(*args, **kwargs).arguments


def require_conversation_participant(
    conversation_id_param: str = "conversation_id",
    user_param: str = "user",
) -> Callable:
    """
    Decorator that requires user to be a conversation participant.

    On success, injects the conversation object as ``_conversation``.

    Returns:
        ServiceResult.failure with CONVERSATION_NOT_FOUND if it doesn't exist
        ServiceResult.failure with NOT_PARTICIPANT if check fails

    Example:
        class MessageService(BaseService):
            @classmethod
            @require_conversation_participant(user_param="sender")
            def send_message(cls, conversation_id, sender, content, _conversation=None):
                ...
    """

    def decorator(
        func: Callable[..., ServiceResult[T]],
    ) -> Callable[..., ServiceResult[T]]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> ServiceResult[T]:
            from chat.models import Conversation

            arguments = _bound_arguments(func, args, kwargs)
            user = arguments.get(user_param)
            conversation_id = arguments.get(conversation_id_param)

            conversation = (
                Conversation.objects.filter(pk=conversation_id).first()
                if conversation_id is not None
                else None
            )
            if conversation is None:
                return ServiceResult.failure(
                    "Conversation not found",
                    error_code=ErrorCode.CONVERSATION_NOT_FOUND,
                )

            if not ChatAuthorizationService.is_conversation_participant(
                user, conversation.pk
            ):
                return ServiceResult.failure(
                    "You are not a participant in this conversation",
                    error_code=ErrorCode.NOT_PARTICIPANT,
                )

            kwargs["_conversation"] = conversation
            return func(*args, **kwargs)

        return wrapper

    return decorator


def require_message_access(
    message_id_param: str = "message_id",
    user_param: str = "user",
) -> Callable:
    """
    Decorator that requires user to have access to a message.

    Checks that the message exists and the user is a participant in the
    message's conversation. On success, injects the message object as
    ``_message`` to avoid redundant database queries.

    Returns:
        ServiceResult.failure with MESSAGE_NOT_FOUND if message doesn't exist
        ServiceResult.failure with NOT_PARTICIPANT if user not in conversation
    """

    def decorator(
        func: Callable[..., ServiceResult[T]],
    ) -> Callable[..., ServiceResult[T]]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> ServiceResult[T]:
            from chat.models import Message

            arguments = _bound_arguments(func, args, kwargs)
            user = arguments.get(user_param)
            message_id = arguments.get(message_id_param)

            message = (
                Message.objects.select_related("conversation", "sender")
                .filter(pk=message_id)
                .first()
                if message_id is not None
                else None
            )
            if message is None:
                return ServiceResult.failure(
                    "Message not found",
                    error_code=ErrorCode.MESSAGE_NOT_FOUND,
                )

            if not ChatAuthorizationService.is_conversation_participant(
                user, message.conversation_id
            ):
                return ServiceResult.failure(
                    "You are not a participant in this conversation",
                    error_code=ErrorCode.NOT_PARTICIPANT,
                )

            kwargs["_message"] = message
            return func(*args, **kwargs)

        return wrapper

    return decorator
