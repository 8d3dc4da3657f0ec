"""Paginated list responses."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Pagination:
    """Position of one page within a result set."""

    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, total: int, page: int, page_size: int) -> "Pagination":
        """Compute the page count; an empty result still has one page."""
        if page_size <= 0:
            raise ValueError("page size must be positive")
        total_pages = math.ceil(total / page_size) or 1
        return cls(total=total, page=page, page_size=page_size, total_pages=total_pages)

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


@dataclass
class PaginatedResponse:
    """A page of items together with its pagination data."""

    data: list[Any] = field(default_factory=list)
    pagination: Pagination = field(default_factory=lambda: Pagination.build(0, 1, 10))

    def to_dict(self) -> dict[str, Any]:
        return {"data": list(self.data), "pagination": self.pagination.to_dict()}