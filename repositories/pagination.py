"""
Pagination read model shared by list queries.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, List, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def clamp_page(page: int, limit: int) -> tuple[int, int]:
    """Normalise user-supplied paging values to a valid (page, limit) pair."""

    page = max(1, int(page or 1))
    limit = max(1, min(int(limit or DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE))
    return page, limit


__all__ = ["DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE", "Page", "clamp_page"]
