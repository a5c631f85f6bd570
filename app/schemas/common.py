"""Response envelope and pagination schemas shared by every endpoint."""

import math
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for every response: {success, message?, data?, details?}."""

    success: bool = Field(default=True, description="False when the request failed")
    message: str | None = Field(default=None, description="Human-readable outcome")
    data: T | None = Field(default=None, description="Payload on success")
    details: Any = Field(
        default=None,
        description="Failure details (e.g. per-field validation messages)",
    )


class Pagination(BaseModel):
    """Offset pagination metadata (1-indexed pages)."""

    current_page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    total: int = Field(..., ge=0, description="Total matching records")
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / page_size) if total else 0
        return cls(
            current_page=page,
            page_size=page_size,
            total_pages=total_pages,
            total=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
