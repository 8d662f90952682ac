"""
Tests for chat service layer business logic.

This module tests:
- ConversationService: create-or-get, listing, detail, deletion
- MessageService: send, history, read/delivered state, unread counts
- PresenceService: online/offline transitions and counterparty pushes

Test Organization:
    - Each service method has its own test class
    - Tests assert ServiceResult state, error codes and database state

Notifier side effects are checked by patching ChatNotifier and running the
transaction.on_commit callbacks with django_capture_on_commit_callbacks.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from authentication.tests.factories import AgentFactory, UserFactory
from chat.constants import ErrorCode
from chat.models import (
    Conversation,
    ConversationPair,
    Message,
    MessageStatus,
    Participant,
    ParticipantRole,
)
from chat.services import ConversationService, MessageService, PresenceService
from chat.tests.factories import MessageFactory, create_conversation_between
from properties.tests.factories import PropertyFactory


# =============================================================================
# ConversationService.create_or_get
# =============================================================================


class TestCreateOrGet:
    """
    Tests for ConversationService.create_or_get().

    Verifies:
    - Creating a conversation with both participants and tagged roles
    - Returning the existing conversation regardless of who initiates
    - Validation of counterparty and property
    """

    def test_creates_conversation_with_tagged_participants(self, buyer, agent, listing):
        """
        Given a buyer and an agent with no conversation about a listing
        When the buyer creates one
        Then a conversation with both participants and correct roles exists
        """
        result = ConversationService.create_or_get(buyer, agent.id, listing.id)

        assert result.success is True
        conversation, created = result.data
        assert created is True
        assert conversation.property == listing
        assert conversation.title == "Inquiry about Sunny 2BR in Osu"
        roles = dict(
            Participant.objects.filter(conversation=conversation).values_list(
                "user_id", "role"
            )
        )
        assert roles == {buyer.id: ParticipantRole.USER, agent.id: ParticipantRole.AGENT}

    def test_returns_existing_conversation_on_repeat(self, buyer, agent, listing):
        """
        Repeated calls resolve to the same conversation.

        Why it matters: Users must always land in the same thread for one
        property instead of fragmenting history.
        """
        first, _ = ConversationService.create_or_get(buyer, agent.id, listing.id).data

        result = ConversationService.create_or_get(buyer, agent.id, listing.id)

        conversation, created = result.data
        assert created is False
        assert conversation.id == first.id
        assert Conversation.objects.count() == 1

    def test_existing_conversation_found_from_either_side(self, buyer, agent, listing):
        """The pair is unordered: the agent finds the buyer's conversation."""
        first, _ = ConversationService.create_or_get(buyer, agent.id, listing.id).data

        conversation, created = ConversationService.create_or_get(
            agent, buyer.id, listing.id
        ).data

        assert created is False
        assert conversation.id == first.id

    def test_different_property_creates_new_conversation(self, buyer, agent, listing):
        first, _ = ConversationService.create_or_get(buyer, agent.id, listing.id).data
        other_listing = PropertyFactory(agent=agent)

        second, created = ConversationService.create_or_get(
            buyer, agent.id, other_listing.id
        ).data

        assert created is True
        assert second.id != first.id

    def test_general_conversation_without_property(self, buyer, agent):
        conversation, created = ConversationService.create_or_get(buyer, agent.id).data

        assert created is True
        assert conversation.property is None
        assert conversation.title == ""
        again, created = ConversationService.create_or_get(buyer, agent.id).data
        assert created is False
        assert again.id == conversation.id

    def test_explicit_title_overrides_derived_one(self, buyer, agent, listing):
        conversation, _ = ConversationService.create_or_get(
            buyer, agent.id, listing.id, title="Viewing on Saturday?"
        ).data

        assert conversation.title == "Viewing on Saturday?"

    def test_title_ignored_for_existing_conversation(self, buyer, agent, listing):
        first, _ = ConversationService.create_or_get(buyer, agent.id, listing.id).data

        again, created = ConversationService.create_or_get(
            buyer, agent.id, listing.id, title="Something else"
        ).data

        assert created is False
        again.refresh_from_db()
        assert again.title == first.title == "Inquiry about Sunny 2BR in Osu"

    def test_cannot_start_conversation_with_self(self, buyer):
        result = ConversationService.create_or_get(buyer, buyer.id)

        assert result.success is False
        assert result.error_code == ErrorCode.SAME_USER
        assert Conversation.objects.count() == 0

    def test_unknown_counterparty(self, buyer):
        result = ConversationService.create_or_get(buyer, 999_999)

        assert result.error_code == ErrorCode.COUNTERPARTY_NOT_FOUND

    def test_inactive_counterparty(self, buyer):
        inactive = AgentFactory(is_active=False)

        result = ConversationService.create_or_get(buyer, inactive.id)

        assert result.error_code == ErrorCode.COUNTERPARTY_NOT_FOUND

    def test_unknown_property(self, buyer, agent):
        result = ConversationService.create_or_get(buyer, agent.id, 999_999)

        assert result.error_code == ErrorCode.PROPERTY_NOT_FOUND
        assert Conversation.objects.count() == 0

    def test_lost_race_resolves_to_existing(self, buyer, agent, listing):
        """
        Given another request created the conversation after our lookup
        When our insert hits the unique constraint
        Then the winner's conversation is returned instead of an error
        """
        winner = create_conversation_between(buyer, agent, listing)

        with patch.object(ConversationService, "_find_existing", side_effect=[None, winner]):
            result = ConversationService.create_or_get(buyer, agent.id, listing.id)

        assert result.success is True
        assert result.data == (winner, False)
        assert ConversationPair.objects.count() == 1


# =============================================================================
# ConversationService.list_for_user / get_for_participant / delete
# =============================================================================


class TestListForUser:
    def test_lists_only_own_conversations(self, buyer, agent, outsider):
        own = create_conversation_between(buyer, agent)
        create_conversation_between(outsider, agent)

        conversations = ConversationService.list_for_user(buyer).data

        assert [c.id for c in conversations] == [own.id]

    def test_orders_by_last_activity(self, buyer):
        quiet = create_conversation_between(buyer, AgentFactory())
        busy = create_conversation_between(buyer, AgentFactory())
        fresh = create_conversation_between(buyer, AgentFactory())
        MessageService.send_message(quiet.id, buyer, "first")
        MessageService.send_message(busy.id, buyer, "second")

        conversations = ConversationService.list_for_user(buyer).data

        # Conversations with messages come first, newest activity first
        assert [c.id for c in conversations] == [busy.id, quiet.id, fresh.id]

    def test_carries_unread_count_and_last_message(self, buyer, agent, conversation):
        MessageFactory(conversation=conversation, sender=agent, content="Hello")
        MessageFactory(conversation=conversation, sender=agent, content="Still there?")
        # Own messages never count as unread
        MessageFactory(conversation=conversation, sender=buyer, content="Yes")

        conversations = list(ConversationService.list_for_user(buyer).data)
        ConversationService.attach_last_messages(conversations)

        summary = conversations[0]
        assert summary.unread_count == 2
        assert summary.last_message.content == "Yes"

    def test_lists_each_conversation_once(self, buyer, agent):
        """The participant join must not duplicate rows."""
        create_conversation_between(buyer, agent)
        create_conversation_between(buyer, AgentFactory())

        assert ConversationService.list_for_user(buyer).data.count() == 2


class TestGetForParticipant:
    def test_participant_gets_conversation(self, conversation, agent):
        result = ConversationService.get_for_participant(conversation.id, agent)

        assert result.success is True
        assert result.data.id == conversation.id
        assert result.data.unread_count == 0

    def test_missing_conversation(self, buyer):
        result = ConversationService.get_for_participant(999_999, buyer)

        assert result.error_code == ErrorCode.CONVERSATION_NOT_FOUND

    def test_non_participant_denied(self, conversation, outsider):
        result = ConversationService.get_for_participant(conversation.id, outsider)

        assert result.error_code == ErrorCode.NOT_PARTICIPANT


class TestDeleteConversation:
    def test_hard_deletes_for_both_participants(self, conversation, buyer, agent):
        """
        Given a conversation with messages
        When one participant deletes it
        Then neither participant can fetch it and its rows are gone
        """
        MessageFactory(conversation=conversation, sender=buyer)

        result = ConversationService.delete_conversation(conversation.id, buyer)

        assert result.success is True
        assert not Conversation.objects.filter(pk=conversation.pk).exists()
        assert Message.objects.count() == 0
        assert Participant.objects.count() == 0
        assert ConversationPair.objects.count() == 0
        for user in (buyer, agent):
            assert (
                ConversationService.get_for_participant(conversation.id, user).error_code
                == ErrorCode.CONVERSATION_NOT_FOUND
            )

    def test_non_participant_cannot_delete(self, conversation, outsider):
        result = ConversationService.delete_conversation(conversation.id, outsider)

        assert result.error_code == ErrorCode.NOT_PARTICIPANT
        assert Conversation.objects.filter(pk=conversation.pk).exists()

    def test_pair_can_be_recreated_after_delete(self, conversation, buyer, agent, listing):
        ConversationService.delete_conversation(conversation.id, buyer)

        new_conversation, created = ConversationService.create_or_get(
            buyer, agent.id, listing.id
        ).data

        assert created is True
        assert new_conversation.id != conversation.id


# =============================================================================
# MessageService.send_message
# =============================================================================


class TestSendMessage:
    def test_sends_and_trims_content(self, conversation, buyer):
        result = MessageService.send_message(conversation.id, buyer, "  Hello there  ")

        assert result.success is True
        message = result.data
        assert message.content == "Hello there"
        assert message.status == MessageStatus.SENT
        assert message.sender == buyer

    def test_updates_conversation_activity(self, conversation, buyer):
        message = MessageService.send_message(conversation.id, buyer, "Hi").data

        conversation.refresh_from_db()
        assert conversation.last_message_at == message.created_at

    def test_activity_time_never_moves_backwards(self, conversation, buyer):
        """
        Given a concurrent send already stamped a later activity time
        When this send writes an earlier message time
        Then last_message_at keeps the later value
        """
        later = timezone.now() + timedelta(minutes=5)
        Conversation.objects.filter(pk=conversation.pk).update(last_message_at=later)

        MessageService.send_message(conversation.id, buyer, "Hi")

        conversation.refresh_from_db()
        assert conversation.last_message_at == later

    def test_notifies_after_commit(
        self, conversation, buyer, django_capture_on_commit_callbacks
    ):
        with patch("chat.services.ChatNotifier.message_created") as notify:
            with django_capture_on_commit_callbacks(execute=True) as callbacks:
                message = MessageService.send_message(conversation.id, buyer, "Hi").data

        assert len(callbacks) == 1
        notify.assert_called_once_with(message)

    @pytest.mark.parametrize("content", ["", "   ", "\n\t", None])
    def test_rejects_empty_content(self, conversation, buyer, content):
        result = MessageService.send_message(conversation.id, buyer, content)

        assert result.error_code == ErrorCode.EMPTY_CONTENT
        assert Message.objects.count() == 0

    def test_accepts_max_length_after_trimming(self, conversation, buyer):
        result = MessageService.send_message(
            conversation.id, buyer, "  " + "a" * 1000 + "  "
        )

        assert result.success is True
        assert len(result.data.content) == 1000

    def test_rejects_too_long_content(self, conversation, buyer):
        result = MessageService.send_message(conversation.id, buyer, "a" * 1001)

        assert result.error_code == ErrorCode.CONTENT_TOO_LONG
        assert "content" in result.errors

    def test_non_participant_cannot_send(
        self, conversation, outsider, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks() as callbacks:
            result = MessageService.send_message(conversation.id, outsider, "Hi")

        assert result.error_code == ErrorCode.NOT_PARTICIPANT
        assert Message.objects.count() == 0
        assert callbacks == []

    def test_missing_conversation(self, buyer):
        result = MessageService.send_message(999_999, buyer, "Hi")

        assert result.error_code == ErrorCode.CONVERSATION_NOT_FOUND


# =============================================================================
# MessageService.get_messages
# =============================================================================


class TestGetMessages:
    def test_returns_history_newest_first(self, conversation, buyer, agent):
        older = MessageFactory(conversation=conversation, sender=agent)
        newer = MessageFactory(conversation=conversation, sender=buyer)

        result = MessageService.get_messages(conversation.id, buyer)

        assert result.success is True
        assert list(result.data) == [newer, older]

    def test_missing_conversation(self, buyer):
        result = MessageService.get_messages(999_999, buyer)

        assert result.error_code == ErrorCode.CONVERSATION_NOT_FOUND

    def test_non_participant_denied(self, conversation, outsider):
        result = MessageService.get_messages(conversation.id, outsider)

        assert result.error_code == ErrorCode.NOT_PARTICIPANT


# =============================================================================
# Read / delivered state
# =============================================================================


class TestMarkMessageRead:
    def test_recipient_marks_read(self, conversation, buyer, agent):
        message = MessageFactory(conversation=conversation, sender=agent)

        result = MessageService.mark_message_read(message.id, buyer)

        assert result.success is True
        assert result.data.status == MessageStatus.READ
        assert result.data.read_at is not None

    def test_is_idempotent(self, conversation, buyer, agent, django_capture_on_commit_callbacks):
        message = MessageFactory(conversation=conversation, sender=agent)
        first = MessageService.mark_message_read(message.id, buyer).data

        with patch("chat.services.ChatNotifier.message_read") as notify:
            with django_capture_on_commit_callbacks(execute=True):
                second = MessageService.mark_message_read(message.id, buyer).data

        assert second.read_at == first.read_at
        notify.assert_not_called()

    def test_notifies_sender(self, conversation, buyer, agent, django_capture_on_commit_callbacks):
        message = MessageFactory(conversation=conversation, sender=agent)

        with patch("chat.services.ChatNotifier.message_read") as notify:
            with django_capture_on_commit_callbacks(execute=True):
                MessageService.mark_message_read(message.id, buyer)

        notify.assert_called_once()
        assert notify.call_args.args[1] == buyer.id

    def test_sender_cannot_mark_own_message(self, conversation, agent):
        message = MessageFactory(conversation=conversation, sender=agent)

        result = MessageService.mark_message_read(message.id, agent)

        assert result.error_code == ErrorCode.IS_SENDER
        message.refresh_from_db()
        assert message.status == MessageStatus.SENT

    def test_non_participant_denied(self, conversation, agent, outsider):
        message = MessageFactory(conversation=conversation, sender=agent)

        result = MessageService.mark_message_read(message.id, outsider)

        assert result.error_code == ErrorCode.NOT_PARTICIPANT

    def test_missing_message(self, buyer):
        result = MessageService.mark_message_read(999_999, buyer)

        assert result.error_code == ErrorCode.MESSAGE_NOT_FOUND


class TestMarkMessageDelivered:
    def test_moves_sent_to_delivered(self, conversation, buyer, agent):
        message = MessageFactory(conversation=conversation, sender=agent)

        result = MessageService.mark_message_delivered(message.id, buyer)

        assert result.data.status == MessageStatus.DELIVERED
        assert result.data.delivered_at is not None

    def test_never_downgrades_read(self, conversation, buyer, agent):
        message = MessageFactory(
            conversation=conversation, sender=agent, status=MessageStatus.READ
        )

        result = MessageService.mark_message_delivered(message.id, buyer)

        assert result.success is True
        message.refresh_from_db()
        assert message.status == MessageStatus.READ

    def test_sender_cannot_acknowledge(self, conversation, agent):
        message = MessageFactory(conversation=conversation, sender=agent)

        result = MessageService.mark_message_delivered(message.id, agent)

        assert result.error_code == ErrorCode.IS_SENDER


class TestMarkConversationRead:
    def test_marks_only_received_unread_messages(self, conversation, buyer, agent):
        MessageFactory(conversation=conversation, sender=agent)
        MessageFactory(conversation=conversation, sender=agent, status=MessageStatus.DELIVERED)
        MessageFactory(conversation=conversation, sender=agent, status=MessageStatus.READ)
        own = MessageFactory(conversation=conversation, sender=buyer)

        result = MessageService.mark_conversation_read(conversation.id, buyer)

        assert result.data == 2
        own.refresh_from_db()
        assert own.status == MessageStatus.SENT
        assert MessageService.get_conversation_unread_count(conversation, buyer) == 0

    def test_nothing_to_read_returns_zero(self, conversation, buyer):
        assert MessageService.mark_conversation_read(conversation.id, buyer).data == 0

    def test_notifies_once_per_message(
        self, conversation, buyer, agent, django_capture_on_commit_callbacks
    ):
        MessageFactory(conversation=conversation, sender=agent)
        MessageFactory(conversation=conversation, sender=agent)

        with patch("chat.services.ChatNotifier.message_read") as notify:
            with django_capture_on_commit_callbacks(execute=True):
                MessageService.mark_conversation_read(conversation.id, buyer)

        assert notify.call_count == 2


class TestUnreadCounts:
    def test_counts_across_conversations(self, buyer, agent, conversation):
        other_agent = AgentFactory()
        other = create_conversation_between(buyer, other_agent)
        MessageFactory(conversation=conversation, sender=agent)
        MessageFactory(conversation=other, sender=other_agent)
        MessageFactory(conversation=other, sender=other_agent, status=MessageStatus.READ)
        MessageFactory(conversation=other, sender=buyer)

        assert MessageService.get_unread_count(buyer) == 2
        assert MessageService.get_unread_count(agent) == 0
        assert MessageService.get_unread_count(other_agent) == 1

    def test_ignores_conversations_user_is_not_in(self, conversation, agent):
        stranger = UserFactory()
        MessageFactory(conversation=conversation, sender=agent)

        assert MessageService.get_unread_count(stranger) == 0

    def test_matches_derived_count_after_mixed_sequence(self, conversation, buyer, agent):
        """
        Given an interleaving of sends and reads from both sides
        When the counters are queried
        Then each equals the number of received messages not yet read
        """
        steps = [
            ("send", agent), ("send", agent), ("read", buyer), ("send", buyer),
            ("send", agent), ("send", buyer), ("read", agent), ("send", agent),
        ]
        for action, actor in steps:
            if action == "send":
                MessageService.send_message(conversation.id, actor, "ping")
                continue
            received = conversation.messages.exclude(sender=actor).first()
            MessageService.mark_message_read(received.id, actor)

        for user in (buyer, agent):
            derived = sum(
                1
                for message in conversation.messages.all()
                if message.sender_id != user.id and message.status != MessageStatus.READ
            )
            assert MessageService.get_unread_count(user) == derived
        assert MessageService.get_unread_count(buyer) == 3
        assert MessageService.get_unread_count(agent) == 1

    def test_read_decrements_count(self, conversation, buyer, agent):
        message = MessageFactory(conversation=conversation, sender=agent)
        assert MessageService.get_unread_count(buyer) == 1

        MessageService.mark_message_read(message.id, buyer)

        assert MessageService.get_unread_count(buyer) == 0


# =============================================================================
# PresenceService
# =============================================================================


class TestPresenceService:
    """
    Online state is a per-user socket counter in the cache.

    Why it matters: a user with two tabs open stays online until both are
    closed, and counterparties hear about each transition exactly once.
    """

    def test_never_connected_user_is_offline(self, buyer):
        assert PresenceService.get_presence(buyer.id) == {
            "isOnline": False,
            "lastSeen": None,
        }

    def test_first_socket_marks_online(self, buyer):
        assert PresenceService.mark_online(buyer.id) is True

        assert PresenceService.get_presence(buyer.id) == {
            "isOnline": True,
            "lastSeen": None,
        }

    def test_second_socket_is_not_a_transition(self, buyer):
        PresenceService.mark_online(buyer.id)

        assert PresenceService.mark_online(buyer.id) is False

    def test_offline_only_after_last_socket_closes(self, buyer):
        PresenceService.mark_online(buyer.id)
        PresenceService.mark_online(buyer.id)

        assert PresenceService.mark_offline(buyer.id) is False
        assert PresenceService.is_online(buyer.id) is True

        assert PresenceService.mark_offline(buyer.id) is True
        presence = PresenceService.get_presence(buyer.id)
        assert presence["isOnline"] is False
        assert presence["lastSeen"] is not None

    def test_refresh_restores_expired_entry(self, buyer):
        PresenceService.refresh(buyer.id)

        assert PresenceService.is_online(buyer.id) is True

    def test_transitions_notify_counterparties(self, conversation, buyer, agent):
        with patch("chat.services.ChatNotifier.presence_changed") as notify:
            PresenceService.mark_online(agent.id)
            PresenceService.mark_online(agent.id)
            PresenceService.mark_offline(agent.id)
            PresenceService.mark_offline(agent.id)

        assert notify.call_count == 2
        went_online, went_offline = notify.call_args_list
        assert went_online.args == (agent.id, True, None, [buyer.id])
        assert went_offline.args[:2] == (agent.id, False)
        assert went_offline.args[3] == [buyer.id]
