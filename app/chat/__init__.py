"""
Chat app for marketplace messaging.

This app handles:
- Two-party conversations between a buyer and an agent, optionally about a property
- Message sending and paginated history
- Read/delivered state and unread counters
- WebSocket real-time updates (one socket per user session)

Related apps:
    - authentication: User model for participants
    - properties: Listings a conversation can be about

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.
    See realtime_client.py for the Python client.

Usage:
    from chat.services import ConversationService, MessageService

    conversation, created = ConversationService.create_or_get(
        requester=user,
        counterparty_id=agent.id,
        property_id=listing.id,
    ).data

    message = MessageService.send_message(
        conversation.id,
        user,
        "Is the flat still available?",
    ).data
"""
