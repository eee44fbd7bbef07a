"""Pagination helpers for list endpoints."""

from lmsapi.clients.http.pagination import Paginator

__all__ = ["Paginator"]
