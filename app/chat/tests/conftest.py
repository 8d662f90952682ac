"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures (buyer, agent, outsider)
- Conversation and property fixtures
- API client helpers for authenticated requests

Usage:
    def test_example(conversation, buyer_client):
        response = buyer_client.get(f"/api/v1/chat/{conversation.id}/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import AgentFactory, UserFactory
from chat.tests.factories import create_conversation_between
from properties.tests.factories import PropertyFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def buyer(db):
    """Marketplace user who starts conversations."""
    return UserFactory(first_name="Ama", last_name="Mensah")


@pytest.fixture
def agent(db):
    """Agent answering inquiries."""
    return AgentFactory(first_name="Kofi", last_name="Boateng")


@pytest.fixture
def outsider(db):
    """User who is not a participant in any test conversation."""
    return UserFactory()


# =============================================================================
# Property & Conversation Fixtures
# =============================================================================


@pytest.fixture
def listing(agent):
    """Property listed by ``agent``."""
    return PropertyFactory(agent=agent, title="Sunny 2BR in Osu")


@pytest.fixture
def conversation(buyer, agent, listing):
    """Conversation between buyer and agent about ``listing``."""
    return create_conversation_between(buyer, agent, listing)


# =============================================================================
# API Client Fixtures
# =============================================================================


def _client_for(user) -> APIClient:
    client = APIClient()
    client.credentials(
        HTTP_AUTHORIZATION=f"Bearer {RefreshToken.for_user(user).access_token}"
    )
    return client


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def buyer_client(buyer):
    return _client_for(buyer)


@pytest.fixture
def agent_client(agent):
    return _client_for(agent)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)


@pytest.fixture
def access_token():
    """Build an access token string for a user."""

    def _token(user) -> str:
        return str(RefreshToken.for_user(user).access_token)

    return _token


# =============================================================================
# Channel Layer Fixtures
# =============================================================================


@pytest.fixture
def channel_layer():
    """In-memory channel layer, emptied before and after the test."""
    from asgiref.sync import async_to_sync
    from channels.layers import get_channel_layer

    layer = get_channel_layer()
    async_to_sync(layer.flush)()
    yield layer
    async_to_sync(layer.flush)()
