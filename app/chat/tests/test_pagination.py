"""
Tests for chat list pagination.

History pagination: page 1 is the newest page, chronological inside.
"""

import pytest
from rest_framework.request import Request
from rest_framework.test import APIRequestFactory

from authentication.tests.factories import AgentFactory
from chat.pagination import ConversationPagination, MessageHistoryPagination
from chat.services import ConversationService, MessageService
from chat.tests.factories import MessageFactory, create_conversation_between


def make_request(**params) -> Request:
    return Request(APIRequestFactory().get("/api/v1/chat/", params))


@pytest.mark.django_db
class TestMessageHistoryPagination:
    @pytest.fixture
    def history(self, conversation, buyer, agent):
        senders = [buyer, agent]
        return [
            MessageFactory(conversation=conversation, sender=senders[i % 2], content=f"m{i}")
            for i in range(5)
        ]

    def _page(self, conversation, user, **params):
        paginator = MessageHistoryPagination()
        queryset = MessageService.get_messages(conversation.id, user).data
        page = paginator.paginate_queryset(queryset, make_request(**params))
        return page, paginator.get_pagination_metadata()

    def test_first_page_holds_newest_messages_in_order(self, conversation, buyer, history):
        messages, pagination = self._page(conversation, buyer, page=1, limit=2)

        assert [m.content for m in messages] == ["m3", "m4"]
        assert pagination["totalDocs"] == 5
        assert pagination["totalPages"] == 3
        assert pagination["nextPage"] == 2

    def test_pages_walked_backwards_reproduce_history(self, conversation, buyer, history):
        """
        Why it matters: Clients load older pages while scrolling up; the
        concatenation must equal the full history with no gaps or repeats.
        """
        pages = []
        for page in (3, 2, 1):
            messages, _ = self._page(conversation, buyer, page=page, limit=2)
            pages.extend(messages)

        assert pages == history

    def test_page_past_end_is_empty(self, conversation, buyer, history):
        messages, pagination = self._page(conversation, buyer, page=10, limit=2)

        assert messages == []
        assert pagination["hasNextPage"] is False

    def test_defaults_and_cap(self, conversation, buyer, history):
        _, default = self._page(conversation, buyer)
        _, capped = self._page(conversation, buyer, limit=1000)

        assert default["limit"] == 50
        assert capped["limit"] == 100


@pytest.mark.django_db
class TestConversationPagination:
    def test_second_page(self, buyer):
        for _ in range(3):
            create_conversation_between(buyer, AgentFactory())
        paginator = ConversationPagination()

        page = paginator.paginate_queryset(
            ConversationService.list_for_user(buyer).data, make_request(page=2, limit=2)
        )
        pagination = paginator.get_pagination_metadata()

        assert len(page) == 1
        assert pagination["totalPages"] == 2
        assert pagination["hasPrevPage"] is True
        assert pagination["hasNextPage"] is False

    def test_limit_capped_at_fifty(self, buyer):
        paginator = ConversationPagination()

        assert paginator.get_page_size(make_request(limit=500)) == 50
