"""Cash-advance endpoints: create, role-scoped lists, lifecycle actions, staff widgets."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.auth import require
from app.api.v1.params import PageParams, advance_filters, page_params
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.models import Advance
from app.schemas.advance import (
    PENDING_STATUSES,
    AdvanceCreate,
    AdvanceData,
    AdvanceListData,
    AdvanceSummary,
    AdvanceSummaryList,
    ApproveRequest,
    DisburseRequest,
    RetireRequest,
    StatusStatsData,
)
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse
from app.services.advances import apply_action, create_advance, get_advance, to_out
from app.services.policy import authorize
from app.services.queries import (
    AdvanceFilters,
    list_advances,
    recent_advances,
    visibility_criteria,
)
from app.services.reports import status_stats

router = APIRouter()

STAFF_RECENT_LIMIT = 5
STAFF_PENDING_LIMIT = 3

Creator = Annotated[CurrentUser, Depends(require("advance:create"))]
Reader = Annotated[CurrentUser, Depends(require("advance:list"))]
StatsReader = Annotated[CurrentUser, Depends(require("advance:stats"))]
Db = Annotated[Session, Depends(get_db)]
Filters = Annotated[AdvanceFilters, Depends(advance_filters)]
Page = Annotated[PageParams, Depends(page_params)]
Sort = Annotated[str | None, Query(description="Field name, prefix - for descending")]


@router.post(
    "",
    response_model=ApiResponse[AdvanceData],
    status_code=status.HTTP_201_CREATED,
)
def create(body: AdvanceCreate, user: Creator, db: Db) -> ApiResponse[AdvanceData]:
    """Submit a new request; it starts pending with a fresh month-scoped request number."""
    advance = create_advance(db, user, body)
    return ApiResponse(
        message="Cash advance request created successfully",
        data=AdvanceData(advance=to_out(advance)),
    )


@router.get("", response_model=ApiResponse[AdvanceListData])
def list_all(
    user: Reader, db: Db, filters: Filters, page: Page, sort: Sort = None
) -> ApiResponse[AdvanceListData]:
    """
    Advances visible to the caller: staff see their own, managers their team,
    finance and admin everyone. Filters narrow that set and never widen it.
    """
    advances, pagination = list_advances(db, user, filters, page.page, page.limit, sort)
    return ApiResponse(
        data=AdvanceListData(
            advances=[to_out(a) for a in advances], pagination=pagination
        )
    )


@router.get("/my-requests", response_model=ApiResponse[AdvanceListData])
def my_requests(
    user: Reader, db: Db, filters: Filters, page: Page, sort: Sort = None
) -> ApiResponse[AdvanceListData]:
    advances, pagination = list_advances(
        db,
        user,
        filters,
        page.page,
        page.limit,
        sort,
        extra_criteria=[Advance.requester_id == user.id],
    )
    return ApiResponse(
        data=AdvanceListData(
            advances=[to_out(a) for a in advances], pagination=pagination
        )
    )


@router.get("/my-requests/{advance_id}", response_model=ApiResponse[AdvanceData])
def my_request(advance_id: int, user: Reader, db: Db) -> ApiResponse[AdvanceData]:
    advance = get_advance(db, advance_id)
    if advance.requester_id != user.id:
        raise NotFoundError("Cash advance request not found")
    return ApiResponse(data=AdvanceData(advance=to_out(advance)))


@router.get("/staff/stats", response_model=ApiResponse[StatusStatsData])
def staff_stats(user: StatsReader, db: Db) -> ApiResponse[StatusStatsData]:
    stats = status_stats(db, [Advance.requester_id == user.id])
    return ApiResponse(data=StatusStatsData(stats=stats))


@router.get("/staff/recent", response_model=ApiResponse[AdvanceSummaryList])
def staff_recent(user: StatsReader, db: Db) -> ApiResponse[AdvanceSummaryList]:
    advances = recent_advances(db, [Advance.requester_id == user.id], STAFF_RECENT_LIMIT)
    return ApiResponse(
        data=AdvanceSummaryList(
            advances=[AdvanceSummary.model_validate(a) for a in advances]
        )
    )


@router.get("/staff/pending", response_model=ApiResponse[AdvanceSummaryList])
def staff_pending(user: StatsReader, db: Db) -> ApiResponse[AdvanceSummaryList]:
    advances = recent_advances(
        db,
        [Advance.requester_id == user.id, Advance.status.in_(PENDING_STATUSES)],
        STAFF_PENDING_LIMIT,
    )
    return ApiResponse(
        data=AdvanceSummaryList(
            advances=[AdvanceSummary.model_validate(a) for a in advances]
        )
    )


@router.get("/dashboard/stats", response_model=ApiResponse[StatusStatsData])
def dashboard_stats(user: StatsReader, db: Db) -> ApiResponse[StatusStatsData]:
    """Status breakdown over everything the caller can see."""
    stats = status_stats(db, visibility_criteria(user))
    return ApiResponse(data=StatusStatsData(stats=stats))


@router.get("/{advance_id}", response_model=ApiResponse[AdvanceData])
def get_one(advance_id: int, user: Reader, db: Db) -> ApiResponse[AdvanceData]:
    advance = get_advance(db, advance_id)
    authorize(user, "advance:read", owner_id=advance.requester_id)
    return ApiResponse(data=AdvanceData(advance=to_out(advance)))


@router.put("/{advance_id}/approve", response_model=ApiResponse[AdvanceData])
def approve(
    advance_id: int,
    body: ApproveRequest,
    user: Annotated[CurrentUser, Depends(require("advance:approve"))],
    db: Db,
) -> ApiResponse[AdvanceData]:
    """Approve or reject (decision=rejected, with a comment) at the caller's stage."""
    advance = apply_action(db, advance_id, body, user)
    return ApiResponse(
        message=f"Request {body.decision} successfully",
        data=AdvanceData(advance=to_out(advance)),
    )


@router.put("/{advance_id}/disburse", response_model=ApiResponse[AdvanceData])
def disburse(
    advance_id: int,
    body: DisburseRequest,
    user: Annotated[CurrentUser, Depends(require("advance:disburse"))],
    db: Db,
) -> ApiResponse[AdvanceData]:
    advance = apply_action(db, advance_id, body, user)
    return ApiResponse(
        message="Funds disbursed successfully",
        data=AdvanceData(advance=to_out(advance)),
    )


@router.put("/{advance_id}/retire", response_model=ApiResponse[AdvanceData])
def retire(
    advance_id: int,
    body: RetireRequest,
    user: Annotated[CurrentUser, Depends(require("advance:retire"))],
    db: Db,
) -> ApiResponse[AdvanceData]:
    """Record actual expenses against a disbursed advance (requester only)."""
    advance = get_advance(db, advance_id)
    authorize(user, "advance:retire", owner_id=advance.requester_id)
    advance = apply_action(db, advance_id, body, user)
    return ApiResponse(
        message="Advance retired successfully",
        data=AdvanceData(advance=to_out(advance)),
    )
