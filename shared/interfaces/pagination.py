"""Pagination used by list endpoints."""

from rest_framework.pagination import PageNumberPagination  # type: ignore


class PageLimitPagination(PageNumberPagination):
    """``?page=2&limit=20`` pagination."""

    page_size = 10
    page_size_query_param = "limit"
    max_page_size = 100
