"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /                                 GET (list), POST (create-or-get)
        /{id}/                            GET
        /{id}/read/                       PUT
        /conversations/{id}/              DELETE

    Messages:
        /{id}/messages/                   GET, POST
        /messages/{id}/read/              PUT
        /unread-count/                    GET

Trailing slashes are optional on every route.

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import re_path

from chat.views import ConversationViewSet, MessageViewSet, UnreadCountView

app_name = "chat"

urlpatterns = [
    re_path(
        r"^$",
        ConversationViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-list",
    ),
    re_path(
        r"^unread-count/?$",
        UnreadCountView.as_view(),
        name="unread-count",
    ),
    re_path(
        r"^messages/(?P<message_pk>\d+)/read/?$",
        MessageViewSet.as_view({"put": "read"}),
        name="message-read",
    ),
    re_path(
        r"^conversations/(?P<conversation_pk>\d+)/?$",
        ConversationViewSet.as_view({"delete": "destroy"}),
        name="conversation-delete",
    ),
    re_path(
        r"^(?P<conversation_pk>\d+)/?$",
        ConversationViewSet.as_view({"get": "retrieve"}),
        name="conversation-detail",
    ),
    re_path(
        r"^(?P<conversation_pk>\d+)/messages/?$",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
    re_path(
        r"^(?P<conversation_pk>\d+)/read/?$",
        ConversationViewSet.as_view({"put": "read"}),
        name="conversation-read",
    ),
]
