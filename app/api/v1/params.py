"""Shared query parameters for list and report endpoints."""

from datetime import datetime
from typing import Annotated, Literal

from fastapi import Query
from pydantic import BaseModel

from app.core.config import settings
from app.schemas.advance import AdvanceStatus, Priority
from app.services.queries import AdvanceFilters


class PageParams(BaseModel):
    page: int
    limit: int


def page_params(
    page: Annotated[int, Query(ge=1, description="1-indexed page number")] = 1,
    limit: Annotated[
        int | None,
        Query(ge=1, le=settings.MAX_PAGE_SIZE, description="Page size"),
    ] = None,
) -> PageParams:
    return PageParams(page=page, limit=limit or settings.DEFAULT_PAGE_SIZE)


def advance_filters(
    status: Annotated[AdvanceStatus | Literal["all"] | None, Query()] = None,
    priority: Annotated[Priority | Literal["all"] | None, Query()] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    start_date: Annotated[datetime | None, Query()] = None,
    end_date: Annotated[datetime | None, Query()] = None,
) -> AdvanceFilters:
    """Caller filters for advance lists; always narrowed further by visibility scope."""
    return AdvanceFilters(
        status=status,
        priority=priority,
        search=search,
        start_date=start_date,
        end_date=end_date,
    )
