"""
Chat application configuration.

This app provides the chat system with:
- One conversation per buyer/agent pair and property
- Tagged participant roles (user, agent)
- Forward-only message status (sent, delivered, read)
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
