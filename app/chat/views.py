"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Create-or-get, list, detail, mark read, delete
- MessageViewSet: History, send, mark one message read
- UnreadCountView: Total unread messages of the caller

URL Structure:
    /api/v1/chat/                          GET, POST
    /api/v1/chat/unread-count/             GET
    /api/v1/chat/messages/{id}/read/       PUT
    /api/v1/chat/conversations/{id}/       DELETE
    /api/v1/chat/{id}/                     GET
    /api/v1/chat/{id}/messages/            GET, POST
    /api/v1/chat/{id}/read/                PUT

Design Decisions:
    - Views only parse input and shape output; all rules live in services
    - Service failures become core.exceptions via ERROR_CODE_EXCEPTIONS and
      are rendered by the envelope exception handler
    - Successful responses use {"status": "success", "data": ...}
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from chat.constants import ERROR_CODE_EXCEPTIONS
from chat.pagination import ConversationPagination, MessageHistoryPagination
from chat.serializers import (
    ConversationCreateSerializer,
    ConversationSerializer,
    MessageCreateSerializer,
    MessageSerializer,
)
from chat.services import ConversationService, MessageService

PAGINATION_PARAMETERS = [
    OpenApiParameter("page", OpenApiTypes.INT, description="1-based page number"),
    OpenApiParameter("limit", OpenApiTypes.INT, description="Items per page"),
]


def success_response(
    data=None,
    message: str | None = None,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    """Build a success envelope."""
    body = {"status": "success"}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return Response(body, status=status_code)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        parameters=PAGINATION_PARAMETERS,
        responses={200: ConversationSerializer(many=True)},
        tags=["Chat - Conversations"],
    ),
    create=extend_schema(
        operation_id="create_conversation",
        summary="Create or get conversation",
        description=(
            "Returns the existing conversation with the agent (and property) "
            "with 200, or creates it with 201."
        ),
        request=ConversationCreateSerializer,
        responses={200: ConversationSerializer, 201: ConversationSerializer},
        tags=["Chat - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        responses={200: ConversationSerializer},
        tags=["Chat - Conversations"],
    ),
    destroy=extend_schema(
        operation_id="delete_conversation",
        summary="Delete conversation",
        description="Deletes the conversation and its messages for both participants.",
        responses={200: OpenApiTypes.OBJECT},
        tags=["Chat - Conversations"],
    ),
    read=extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=None,
        responses={200: OpenApiTypes.OBJECT},
        tags=["Chat - Conversations"],
    ),
)
class ConversationViewSet(viewsets.ViewSet):
    """
    ViewSet for conversation operations.

    list:
        Conversations of the current user, most recent activity first, with
        counterparty, property summary, last message and unread count.

    create:
        Resolve the conversation with an agent, optionally about a property.
        Idempotent: repeated calls return the same conversation.

    retrieve:
        Conversation detail for a participant.

    destroy:
        Hard delete for both participants.

    read:
        Mark every received message in the conversation as read.
    """

    permission_classes = [IsAuthenticated]

    def _detail(self, request, conversation_id: int) -> dict:
        conversation = ConversationService.get_for_participant(
            conversation_id, request.user
        ).unwrap(ERROR_CODE_EXCEPTIONS)
        return ConversationSerializer(conversation, context={"request": request}).data

    def list(self, request):
        queryset = ConversationService.list_for_user(request.user).unwrap(
            ERROR_CODE_EXCEPTIONS
        )
        paginator = ConversationPagination()
        conversations = paginator.paginate_queryset(queryset, request, view=self)
        ConversationService.attach_last_messages(conversations)

        serializer = ConversationSerializer(
            conversations, many=True, context={"request": request}
        )
        return paginator.get_paginated_response(serializer.data)

    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        conversation, created = ConversationService.create_or_get(
            request.user,
            serializer.validated_data["agentId"],
            serializer.validated_data.get("propertyId"),
            serializer.validated_data.get("title"),
        ).unwrap(ERROR_CODE_EXCEPTIONS)

        return success_response(
            self._detail(request, conversation.id),
            message=(
                "Conversation created successfully"
                if created
                else "Conversation already exists"
            ),
            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    def retrieve(self, request, conversation_pk=None):
        return success_response(self._detail(request, int(conversation_pk)))

    def destroy(self, request, conversation_pk=None):
        ConversationService.delete_conversation(
            int(conversation_pk), request.user
        ).unwrap(ERROR_CODE_EXCEPTIONS)
        return success_response(message="Conversation deleted successfully")

    def read(self, request, conversation_pk=None):
        updated = MessageService.mark_conversation_read(
            int(conversation_pk), request.user
        ).unwrap(ERROR_CODE_EXCEPTIONS)
        return success_response(
            {"updatedCount": updated},
            message="Conversation marked as read",
        )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="List messages",
        description=(
            "Page 1 holds the most recent messages; messages inside a page are "
            "in chronological order."
        ),
        parameters=PAGINATION_PARAMETERS,
        responses={200: MessageSerializer(many=True)},
        tags=["Chat - Messages"],
    ),
    create=extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
        tags=["Chat - Messages"],
    ),
    read=extend_schema(
        operation_id="mark_message_read",
        summary="Mark message as read",
        request=None,
        responses={200: MessageSerializer},
        tags=["Chat - Messages"],
    ),
)
class MessageViewSet(viewsets.ViewSet):
    """
    ViewSet for message operations.

    list:
        Paginated history of a conversation.

    create:
        Send a message (1-1000 characters after trimming).

    read:
        Mark a received message as read. Idempotent.
    """

    permission_classes = [IsAuthenticated]

    def list(self, request, conversation_pk=None):
        queryset = MessageService.get_messages(
            int(conversation_pk), request.user
        ).unwrap(ERROR_CODE_EXCEPTIONS)
        paginator = MessageHistoryPagination()
        messages = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(
            MessageSerializer(messages, many=True).data
        )

    def create(self, request, conversation_pk=None):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        message = MessageService.send_message(
            int(conversation_pk),
            request.user,
            serializer.validated_data["content"],
        ).unwrap(ERROR_CODE_EXCEPTIONS)

        return success_response(
            MessageSerializer(message).data,
            message="Message sent successfully",
            status_code=status.HTTP_201_CREATED,
        )

    def read(self, request, message_pk=None):
        message = MessageService.mark_message_read(
            int(message_pk), request.user
        ).unwrap(ERROR_CODE_EXCEPTIONS)
        return success_response(
            MessageSerializer(message).data,
            message="Message marked as read",
        )


class UnreadCountView(APIView):
    """
    Total number of unread messages for the current user.

    GET /api/v1/chat/unread-count/ -> {"status": "success", "data": {"unreadCount": 3}}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_unread_count",
        summary="Get unread message count",
        responses={200: OpenApiTypes.OBJECT},
        tags=["Chat - Messages"],
    )
    def get(self, request):
        return success_response(
            {"unreadCount": MessageService.get_unread_count(request.user)}
        )
