# backend/portfolio_tracker/schemas/pagination.py
"""
Pagination metadata for list endpoints.

List endpoints are page based (``page`` is 1-indexed, ``limit`` items per
page). The metadata carries computed fields so clients never have to
re-derive them.

Usage:
    from portfolio_tracker.schemas.pagination import PaginationMeta

    return TransactionListResponse(
        items=[...],
        pagination=PaginationMeta.create(total=page.total, page=page.page, limit=page.limit),
    )
"""

from pydantic import BaseModel, Field, computed_field


class PaginationMeta(BaseModel):
    """
    Pagination metadata for list responses.

    Attributes:
        total: Total number of items matching the query
        page: Current page number (1-indexed)
        limit: Maximum items returned per page
        pages: Total number of pages (computed)
        has_next: Whether there are more pages (computed)
        has_previous: Whether there are previous pages (computed)
    """

    total: int = Field(..., ge=0, description="Total number of items matching query")
    page: int = Field(..., ge=1, description="Current page number (1-indexed)")
    limit: int = Field(..., ge=1, description="Maximum items per page")

    @computed_field
    @property
    def pages(self) -> int:
        """Total number of pages."""
        if self.total <= 0:
            return 1
        return (self.total + self.limit - 1) // self.limit  # Ceiling division

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @computed_field
    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @classmethod
    def create(cls, total: int, page: int, limit: int) -> "PaginationMeta":
        return cls(total=total, page=page, limit=limit)
