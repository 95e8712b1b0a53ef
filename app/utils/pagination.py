"""Pagination utilities for list endpoints."""

from dataclasses import dataclass


# Pagination limits
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PaginationParams:
    """Normalized page/page_size pair."""
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def clamp_pagination(page: int | None, page_size: int | None) -> PaginationParams:
    """
    Clamp raw values instead of rejecting them.

    page < 1 becomes 1; page_size is bounded to [1, MAX_PAGE_SIZE].
    """
    page = DEFAULT_PAGE if page is None else max(page, 1)
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    return PaginationParams(page=page, page_size=page_size)
