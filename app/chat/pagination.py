"""
Pagination classes for chat API.

Both lists use page/limit query parameters:
- ConversationPagination: most recent activity first, default 10 per page
- MessageHistoryPagination: page 1 is the newest page, chronological
  within a page, default 50 per page

Query parameters:
    page: 1-based page number
    limit: Items per page (capped at the list's maximum)
"""

from chat.constants import PAGINATION_CONFIG
from core.pagination import PageLimitPagination


class ConversationPagination(PageLimitPagination):
    """Pagination for the conversation list."""

    page_size = PAGINATION_CONFIG.CONVERSATIONS_DEFAULT_LIMIT
    max_page_size = PAGINATION_CONFIG.CONVERSATIONS_MAX_LIMIT


class MessageHistoryPagination(PageLimitPagination):
    """
    Pagination for message history.

    Expects a newest-first queryset. Pages are cut from the newest end and
    each page is flipped to chronological order, so walking from the last
    page back to page 1 yields the whole history once, oldest to newest.
    """

    page_size = PAGINATION_CONFIG.MESSAGES_DEFAULT_LIMIT
    max_page_size = PAGINATION_CONFIG.MESSAGES_MAX_LIMIT

    def paginate_queryset(self, queryset, request, view=None):
        page = super().paginate_queryset(queryset, request, view)
        page.reverse()
        return page
