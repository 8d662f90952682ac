"""
Page/limit pagination shared by the API.

List endpoints take ``page`` and ``limit`` query parameters and answer with
the standard envelope plus a ``pagination`` block:

    {
        "status": "success",
        "data": [...],
        "pagination": {
            "totalDocs": 120,
            "limit": 50,
            "totalPages": 3,
            "page": 1,
            "hasPrevPage": false,
            "hasNextPage": true,
            "prevPage": null,
            "nextPage": 2
        }
    }

Usage:
    from core.pagination import PageLimitPagination

    paginator = PageLimitPagination()
    page = paginator.paginate_queryset(queryset, request, view=self)
    serializer = ItemSerializer(page, many=True)
    return paginator.get_paginated_response(serializer.data)
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from core.exceptions import ValidationError

if TYPE_CHECKING:
    from typing import Any

    from django.db.models import QuerySet
    from rest_framework.request import Request


DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def calculate_pagination(total: int, page: int, limit: int) -> dict:
    """
    Calculate pagination metadata.

    Pages past the end are not clamped: they are reported as requested and
    simply contain no items.

    Example:
        calculate_pagination(total=120, page=2, limit=50)
        # {
        #     "totalDocs": 120,
        #     "limit": 50,
        #     "totalPages": 3,
        #     "page": 2,
        #     "hasPrevPage": True,
        #     "hasNextPage": True,
        #     "prevPage": 1,
        #     "nextPage": 3,
        # }
    """
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    has_prev = page > 1
    has_next = page < total_pages

    return {
        "totalDocs": total,
        "limit": limit,
        "totalPages": total_pages,
        "page": page,
        "hasPrevPage": has_prev,
        "hasNextPage": has_next,
        "prevPage": page - 1 if has_prev else None,
        "nextPage": page + 1 if has_next else None,
    }


def _positive_int(raw: Any, name: str, default: int) -> int:
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = 0
    if value < 1:
        raise ValidationError(
            f"'{name}' must be a positive integer",
            error_code="INVALID_PAGINATION",
            details={name: ["A positive integer is required."]},
        )
    return value


class PageLimitPagination(PageNumberPagination):
    """
    Page/limit pagination with envelope metadata.

    Differs from the stock PageNumberPagination in three ways:
    - the page size parameter is ``limit`` and is capped at ``max_page_size``
    - malformed ``page``/``limit`` values raise INVALID_PAGINATION (400)
      instead of falling back silently
    - a page past the end is an empty page, not a 404
    """

    page_size = DEFAULT_LIMIT
    page_size_query_param = "limit"
    max_page_size = MAX_LIMIT

    def get_page_number(self, request: Request, paginator=None) -> int:
        return _positive_int(
            request.query_params.get(self.page_query_param), self.page_query_param, 1
        )

    def get_page_size(self, request: Request) -> int:
        size = _positive_int(
            request.query_params.get(self.page_size_query_param),
            self.page_size_query_param,
            self.page_size,
        )
        return min(size, self.max_page_size)

    def paginate_queryset(
        self, queryset: QuerySet, request: Request, view=None
    ) -> list:
        self.request = request
        self.page_number = self.get_page_number(request)
        self.limit = self.get_page_size(request)
        self.total = queryset.count()

        offset = (self.page_number - 1) * self.limit
        return list(queryset[offset : offset + self.limit])

    def get_pagination_metadata(self) -> dict:
        return calculate_pagination(self.total, self.page_number, self.limit)

    def get_paginated_response(self, data: Any) -> Response:
        return Response(
            {
                "status": "success",
                "data": data,
                "pagination": self.get_pagination_metadata(),
            }
        )

    def get_paginated_response_schema(self, schema: dict) -> dict:
        return {
            "type": "object",
            "required": ["status", "data", "pagination"],
            "properties": {
                "status": {"type": "string", "example": "success"},
                "data": schema,
                "pagination": {
                    "type": "object",
                    "properties": {
                        "totalDocs": {"type": "integer"},
                        "limit": {"type": "integer"},
                        "totalPages": {"type": "integer"},
                        "page": {"type": "integer"},
                        "hasPrevPage": {"type": "boolean"},
                        "hasNextPage": {"type": "boolean"},
                        "prevPage": {"type": "integer", "nullable": True},
                        "nextPage": {"type": "integer", "nullable": True},
                    },
                },
            },
        }
