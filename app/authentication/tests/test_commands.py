"""
Tests for the create_chat_user management command.
"""

from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from authentication.models import User, UserRole


def run_command(*args):
    out = StringIO()
    call_command("create_chat_user", *args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestCreateChatUser:
    def test_creates_agent_with_password(self):
        output = run_command(
            "agent@example.com",
            "--role",
            "agent",
            "--first-name",
            "John",
            "--last-name",
            "Doe",
            "--password",
            "Agent@123",
        )

        agent = User.objects.get(email="agent@example.com")
        assert agent.role == UserRole.AGENT
        assert agent.first_name == "John"
        assert agent.check_password("Agent@123") is True
        assert "Created agent agent@example.com" in output

    def test_existing_user_is_left_untouched(self, user):
        """
        Why it matters: seeding scripts are rerun; the command must not
        reset passwords or roles of existing accounts.
        """
        output = run_command("BUYER@example.com", "--role", "agent")

        user.refresh_from_db()
        assert user.role == UserRole.USER
        assert User.objects.count() == 1
        assert "already exists" in output

    def test_invalid_email_raises_command_error(self):
        with pytest.raises(CommandError):
            run_command("not-an-email")
