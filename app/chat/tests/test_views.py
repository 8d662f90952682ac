"""
Tests for chat API endpoints.

Covers the HTTP contract of every chat route: status codes, the success and
error envelopes, camelCase payloads and participant-only access. Business
rules are covered in test_services.py.
"""

import pytest
from rest_framework import status

from authentication.tests.factories import AgentFactory
from chat.models import Conversation, MessageStatus
from chat.services import PresenceService
from chat.tests.factories import MessageFactory, create_conversation_between

CHAT_URL = "/api/v1/chat/"


def detail_url(conversation_id):
    return f"{CHAT_URL}{conversation_id}/"


def messages_url(conversation_id):
    return f"{CHAT_URL}{conversation_id}/messages/"


# =============================================================================
# Conversations
# =============================================================================


@pytest.mark.django_db
class TestCreateConversation:
    """POST /api/v1/chat/"""

    def test_creates_conversation(self, buyer_client, buyer, agent, listing):
        response = buyer_client.post(
            CHAT_URL, {"agentId": agent.id, "propertyId": listing.id}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == "success"
        data = response.data["data"]
        assert data["propertyId"] == listing.id
        assert data["property"]["title"] == "Sunny 2BR in Osu"
        assert data["counterparty"]["id"] == agent.id
        assert data["unreadCount"] == 0
        assert data["lastMessage"] is None

    def test_existing_conversation_returns_200(self, buyer_client, agent, listing):
        payload = {"agentId": agent.id, "propertyId": listing.id}
        first = buyer_client.post(CHAT_URL, payload, format="json")

        second = buyer_client.post(CHAT_URL, payload, format="json")

        assert second.status_code == status.HTTP_200_OK
        assert second.data["data"]["id"] == first.data["data"]["id"]
        assert Conversation.objects.count() == 1

    def test_custom_title(self, buyer_client, agent, listing):
        response = buyer_client.post(
            CHAT_URL,
            {"agentId": agent.id, "propertyId": listing.id, "title": "  Viewing Saturday?  "},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["data"]["title"] == "Viewing Saturday?"

    def test_title_longer_than_200_rejected(self, buyer_client, agent):
        response = buyer_client.post(
            CHAT_URL, {"agentId": agent.id, "title": "x" * 201}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "title" in response.data["errors"]
        assert Conversation.objects.count() == 0

    def test_property_is_optional(self, buyer_client, agent):
        response = buyer_client.post(CHAT_URL, {"agentId": agent.id}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["data"]["propertyId"] is None

    def test_missing_agent_id_is_validation_error(self, buyer_client):
        response = buyer_client.post(CHAT_URL, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["status"] == "fail"
        assert response.data["errorCode"] == "VALIDATION_ERROR"
        assert "agentId" in response.data["errors"]

    def test_self_conversation_rejected(self, buyer_client, buyer):
        response = buyer_client.post(CHAT_URL, {"agentId": buyer.id}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["errorCode"] == "SAME_USER"

    def test_unknown_agent_is_404(self, buyer_client):
        response = buyer_client.post(CHAT_URL, {"agentId": 999_999}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["errorCode"] == "COUNTERPARTY_NOT_FOUND"

    def test_unknown_property_is_404(self, buyer_client, agent):
        response = buyer_client.post(
            CHAT_URL, {"agentId": agent.id, "propertyId": 999_999}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["errorCode"] == "PROPERTY_NOT_FOUND"

    def test_requires_authentication(self, api_client, agent):
        response = api_client.post(CHAT_URL, {"agentId": agent.id}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data["status"] == "fail"


@pytest.mark.django_db
class TestListConversations:
    """GET /api/v1/chat/"""

    def test_lists_own_conversations_with_pagination(
        self, buyer_client, conversation, agent
    ):
        MessageFactory(conversation=conversation, sender=agent, content="Welcome!")
        create_conversation_between(AgentFactory(), agent)

        response = buyer_client.get(CHAT_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == "success"
        assert [c["id"] for c in response.data["data"]] == [conversation.id]
        item = response.data["data"][0]
        assert item["lastMessage"]["content"] == "Welcome!"
        assert item["unreadCount"] == 1
        assert response.data["pagination"]["totalDocs"] == 1
        assert response.data["pagination"]["limit"] == 10

    def test_limit_and_page(self, buyer_client, buyer):
        for _ in range(3):
            create_conversation_between(buyer, AgentFactory())

        response = buyer_client.get(CHAT_URL, {"page": 2, "limit": 2})

        assert len(response.data["data"]) == 1
        assert response.data["pagination"]["page"] == 2
        assert response.data["pagination"]["prevPage"] == 1

    def test_invalid_page_rejected(self, buyer_client):
        response = buyer_client.get(CHAT_URL, {"page": "zero"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["errorCode"] == "INVALID_PAGINATION"

    def test_works_without_trailing_slash(self, buyer_client, conversation):
        response = buyer_client.get(CHAT_URL.rstrip("/"))

        assert response.status_code == status.HTTP_200_OK


@pytest.mark.django_db
class TestConversationDetail:
    """GET /api/v1/chat/{id}/"""

    def test_participant_gets_detail(self, agent_client, conversation, buyer):
        response = agent_client.get(detail_url(conversation.id))

        assert response.status_code == status.HTTP_200_OK
        data = response.data["data"]
        assert data["counterparty"]["id"] == buyer.id
        assert {p["role"] for p in data["participants"]} == {"user", "agent"}

    def test_counterparty_presence(self, agent_client, conversation, buyer):
        offline = agent_client.get(detail_url(conversation.id)).data["data"]
        PresenceService.mark_online(buyer.id)
        online = agent_client.get(detail_url(conversation.id)).data["data"]

        assert offline["counterparty"]["isOnline"] is False
        assert offline["counterparty"]["lastSeen"] is None
        assert online["counterparty"]["isOnline"] is True

    def test_non_participant_forbidden(self, outsider_client, conversation):
        response = outsider_client.get(detail_url(conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["errorCode"] == "NOT_PARTICIPANT"

    def test_missing_conversation_not_found(self, buyer_client):
        response = buyer_client.get(detail_url(999_999))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data == {
            "status": "fail",
            "message": "Conversation not found",
            "errorCode": "CONVERSATION_NOT_FOUND",
        }


@pytest.mark.django_db
class TestDeleteConversation:
    """DELETE /api/v1/chat/conversations/{id}/"""

    def test_participant_deletes(self, buyer_client, agent_client, conversation):
        response = buyer_client.delete(f"{CHAT_URL}conversations/{conversation.id}/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {
            "status": "success",
            "message": "Conversation deleted successfully",
        }
        assert agent_client.get(detail_url(conversation.id)).status_code == 404

    def test_non_participant_forbidden(self, outsider_client, conversation):
        response = outsider_client.delete(f"{CHAT_URL}conversations/{conversation.id}")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert Conversation.objects.filter(pk=conversation.pk).exists()

    def test_get_on_delete_route_not_allowed(self, buyer_client, conversation):
        response = buyer_client.get(f"{CHAT_URL}conversations/{conversation.id}/")

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
        assert response.data["status"] == "fail"


# =============================================================================
# Messages
# =============================================================================


@pytest.mark.django_db
class TestSendMessage:
    """POST /api/v1/chat/{id}/messages/"""

    def test_sends_message(self, buyer_client, buyer, conversation):
        response = buyer_client.post(
            messages_url(conversation.id), {"content": "  Is it available?  "}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.data["data"]
        assert data["content"] == "Is it available?"
        assert data["chatId"] == conversation.id
        assert data["senderId"] == buyer.id
        assert data["status"] == "sent"
        assert data["isRead"] is False
        assert data["sender"]["firstName"] == "Ama"

    def test_blank_content_rejected(self, buyer_client, conversation):
        response = buyer_client.post(
            messages_url(conversation.id), {"content": "   "}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["errorCode"] == "EMPTY_CONTENT"
        assert "content" in response.data["errors"]

    def test_too_long_content_rejected(self, buyer_client, conversation):
        response = buyer_client.post(
            messages_url(conversation.id), {"content": "x" * 1001}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["errorCode"] == "CONTENT_TOO_LONG"

    def test_non_participant_forbidden(self, outsider_client, conversation):
        response = outsider_client.post(
            messages_url(conversation.id), {"content": "Hi"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_works_without_trailing_slash(self, buyer_client, conversation):
        response = buyer_client.post(
            messages_url(conversation.id).rstrip("/"), {"content": "Hi"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED


@pytest.mark.django_db
class TestMessageHistory:
    """GET /api/v1/chat/{id}/messages/"""

    def test_returns_newest_page_in_chronological_order(
        self, buyer_client, conversation, buyer, agent
    ):
        for i in range(4):
            MessageFactory(
                conversation=conversation,
                sender=buyer if i % 2 else agent,
                content=f"m{i}",
            )

        response = buyer_client.get(messages_url(conversation.id), {"limit": 3})

        assert response.status_code == status.HTTP_200_OK
        assert [m["content"] for m in response.data["data"]] == ["m1", "m2", "m3"]
        assert response.data["pagination"]["totalPages"] == 2

    def test_default_limit_is_fifty(self, buyer_client, conversation):
        response = buyer_client.get(messages_url(conversation.id))

        assert response.data["pagination"]["limit"] == 50

    def test_non_participant_forbidden(self, outsider_client, conversation):
        response = outsider_client.get(messages_url(conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestReadEndpoints:
    """PUT read routes and GET unread-count."""

    def test_mark_message_read(self, buyer_client, conversation, agent):
        message = MessageFactory(conversation=conversation, sender=agent)

        response = buyer_client.put(f"{CHAT_URL}messages/{message.id}/read/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"]["isRead"] is True
        assert response.data["data"]["readAt"] is not None

    def test_sender_cannot_mark_own_message(self, agent_client, conversation, agent):
        message = MessageFactory(conversation=conversation, sender=agent)

        response = agent_client.put(f"{CHAT_URL}messages/{message.id}/read")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["errorCode"] == "IS_SENDER"

    def test_unknown_message_not_found(self, buyer_client):
        response = buyer_client.put(f"{CHAT_URL}messages/999999/read/")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["errorCode"] == "MESSAGE_NOT_FOUND"

    def test_mark_conversation_read(self, buyer_client, conversation, agent):
        MessageFactory(conversation=conversation, sender=agent)
        MessageFactory(conversation=conversation, sender=agent)

        response = buyer_client.put(f"{detail_url(conversation.id)}read/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["data"] == {"updatedCount": 2}

    def test_unread_count(self, buyer_client, agent_client, conversation, agent):
        MessageFactory(conversation=conversation, sender=agent)
        MessageFactory(conversation=conversation, sender=agent, status=MessageStatus.READ)

        response = buyer_client.get(f"{CHAT_URL}unread-count/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"status": "success", "data": {"unreadCount": 1}}
        assert agent_client.get(f"{CHAT_URL}unread-count").data["data"] == {
            "unreadCount": 0
        }
