"""
Constants and configuration for the chat module.

This module centralizes configuration values for:
- Conversation and message content limits
- Page/limit pagination of conversations and messages
- Realtime delivery (channel group names, websocket close codes, reconnect)
- Presence tracking (cache keys and expiry)
- Error code to exception mapping used by views and the websocket consumer

Import example:
    from chat.constants import MESSAGE_CONFIG, ERROR_CODE_EXCEPTIONS
"""

from typing import Final

from core.exceptions import (
    BaseApplicationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


# =============================================================================
# Conversation Configuration
# =============================================================================


class CONVERSATION_CONFIG:
    """Configuration for conversation operations."""

    MAX_TITLE_LENGTH: Final[int] = 200


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 1000  # Characters, after trimming
    MIN_CONTENT_LENGTH: Final[int] = 1

    # Characters of the last message shown in conversation lists
    PREVIEW_LENGTH: Final[int] = 100


# =============================================================================
# Pagination Configuration
# =============================================================================


class PAGINATION_CONFIG:
    """Page/limit defaults for list endpoints."""

    CONVERSATIONS_DEFAULT_LIMIT: Final[int] = 10
    CONVERSATIONS_MAX_LIMIT: Final[int] = 50

    MESSAGES_DEFAULT_LIMIT: Final[int] = 50
    MESSAGES_MAX_LIMIT: Final[int] = 100


# =============================================================================
# Realtime Configuration
# =============================================================================


class REALTIME_CONFIG:
    """Configuration for websocket delivery."""

    # Channel layer group receiving every event for one user
    USER_GROUP_TEMPLATE: Final[str] = "chat_user_{user_id}"

    # Close code sent when a socket fails authentication
    CLOSE_CODE_UNAUTHORIZED: Final[int] = 4001

    # Client reconnection policy
    RECONNECT_ATTEMPTS: Final[int] = 5
    RECONNECT_DELAY_SECONDS: Final[float] = 1.0

    # Client ping interval; each ping keeps the presence entry alive
    HEARTBEAT_INTERVAL_SECONDS: Final[float] = 30.0

    # Events buffered per client subscription before the oldest is dropped
    SUBSCRIPTION_BUFFER_SIZE: Final[int] = 1000


def user_group_name(user_id) -> str:
    """Return the channel layer group name for a user."""
    return REALTIME_CONFIG.USER_GROUP_TEMPLATE.format(user_id=user_id)


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence tracking."""

    # Open-socket counter expiry. Refreshed by client pings, so a counter
    # left behind by a crashed worker expires after this many seconds.
    CONNECTIONS_TTL_SECONDS: Final[int] = 90

    # How long "last seen" is remembered after the last socket closes
    LAST_SEEN_TTL_SECONDS: Final[int] = 60 * 60 * 24 * 30

    # Cache key prefixes
    KEY_PREFIX_CONNECTIONS: Final[str] = "chat:presence:connections"
    KEY_PREFIX_LAST_SEEN: Final[str] = "chat:presence:last_seen"


# =============================================================================
# Error Codes
# =============================================================================


class ErrorCode:
    """Machine-readable error codes returned by chat services."""

    SAME_USER = "SAME_USER"
    COUNTERPARTY_NOT_FOUND = "COUNTERPARTY_NOT_FOUND"
    PROPERTY_NOT_FOUND = "PROPERTY_NOT_FOUND"
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"
    MESSAGE_NOT_FOUND = "MESSAGE_NOT_FOUND"
    NOT_PARTICIPANT = "NOT_PARTICIPANT"
    IS_SENDER = "IS_SENDER"
    EMPTY_CONTENT = "EMPTY_CONTENT"
    CONTENT_TOO_LONG = "CONTENT_TOO_LONG"


ERROR_CODE_EXCEPTIONS: Final[dict[str, type[BaseApplicationError]]] = {
    ErrorCode.SAME_USER: ValidationError,
    ErrorCode.COUNTERPARTY_NOT_FOUND: NotFoundError,
    ErrorCode.PROPERTY_NOT_FOUND: NotFoundError,
    ErrorCode.CONVERSATION_NOT_FOUND: NotFoundError,
    ErrorCode.MESSAGE_NOT_FOUND: NotFoundError,
    ErrorCode.NOT_PARTICIPANT: PermissionDeniedError,
    ErrorCode.IS_SENDER: PermissionDeniedError,
    ErrorCode.EMPTY_CONTENT: ValidationError,
    ErrorCode.CONTENT_TOO_LONG: ValidationError,
}
