"""Reporting endpoints; every aggregate is computed over the caller's visibility scope."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.auth import require
from app.api.v1.params import advance_filters
from app.core.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse
from app.schemas.report import (
    MonthlyTrendsReport,
    OverdueReturnsReport,
    PendingAdvancesReport,
    SummaryReport,
    UserActivityReport,
)
from app.services import reports
from app.services.queries import AdvanceFilters

router = APIRouter()

Viewer = Annotated[CurrentUser, Depends(require("report:view"))]
Db = Annotated[Session, Depends(get_db)]
Filters = Annotated[AdvanceFilters, Depends(advance_filters)]


@router.get("/summary", response_model=ApiResponse[SummaryReport])
def summary(
    user: Viewer,
    db: Db,
    filters: Filters,
    department: Annotated[str | None, Query(max_length=50)] = None,
) -> ApiResponse[SummaryReport]:
    """Totals with status and department breakdowns; filters by date range, department and status."""
    return ApiResponse(data=reports.summary_report(db, user, filters, department))


@router.get("/user-activity", response_model=ApiResponse[UserActivityReport])
def user_activity(
    user: Viewer,
    db: Db,
    filters: Filters,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> ApiResponse[UserActivityReport]:
    return ApiResponse(data=reports.user_activity(db, user, filters, limit))


@router.get("/monthly-trends", response_model=ApiResponse[MonthlyTrendsReport])
def monthly_trends(
    user: Viewer,
    db: Db,
    year: Annotated[int | None, Query(ge=2000, le=2100)] = None,
) -> ApiResponse[MonthlyTrendsReport]:
    """Twelve months of totals for year (default: current year), with approval rate."""
    year = year or datetime.now(UTC).year
    return ApiResponse(data=reports.monthly_trends_report(db, user, year))


@router.get("/pending-advances", response_model=ApiResponse[PendingAdvancesReport])
def pending_advances(user: Viewer, db: Db) -> ApiResponse[PendingAdvancesReport]:
    return ApiResponse(data=reports.pending_advances(db, user))


@router.get("/overdue-returns", response_model=ApiResponse[OverdueReturnsReport])
def overdue_returns(
    user: Annotated[CurrentUser, Depends(require("report:overdue"))],
    db: Db,
) -> ApiResponse[OverdueReturnsReport]:
    """Disbursed advances past their expected return date."""
    return ApiResponse(data=reports.overdue_returns(db, user))
