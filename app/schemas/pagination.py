"""Pagination Schemas."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from app.config import Limits

T = TypeVar("T")


class PaginationParams(BaseModel):
    """Seite + Seitengröße (Tickets: feste Seitengröße)."""

    page: int = Field(default=1, ge=1, description="Seitennummer (1-basiert)")
    per_page: int = Field(
        default=Limits.TICKETS_PER_PAGE,
        ge=1,
        le=Limits.PAGE_SIZE_MAX,
        description="Einträge pro Seite",
    )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class PaginatedResponse(BaseModel, Generic[T]):
    """Generische paginierte Response: {items, total, page, per_page, pages}."""

    items: list[T]
    total: int = Field(description="Gesamtanzahl der Einträge")
    page: int = Field(description="Aktuelle Seite")
    per_page: int = Field(description="Einträge pro Seite")
    pages: int = Field(description="Gesamtanzahl der Seiten")

    @staticmethod
    def page_count(total: int, per_page: int) -> int:
        return -(-total // per_page) if per_page > 0 else 0
