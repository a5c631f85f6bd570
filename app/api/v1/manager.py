"""Manager views over their team (staff of the same department)."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.auth import require
from app.api.v1.params import PageParams, advance_filters, page_params
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.models import Advance
from app.schemas.advance import (
    COMMENT_MAX_LENGTH,
    AdvanceData,
    ApproveRequest,
    RejectRequest,
)
from app.schemas.auth import CurrentUser
from app.schemas.common import ApiResponse
from app.schemas.report import (
    ManagerDashboard,
    ManagerReport,
    PendingApprovalsData,
    TeamMemberRequestsData,
    TeamMembersData,
    TeamRequestsData,
)
from app.services.advances import apply_action, get_advance, to_out
from app.services.policy import in_visibility_scope
from app.services.queries import AdvanceFilters, list_advances
from app.services.team import (
    get_team_member,
    manager_dashboard,
    manager_report,
    team_members,
    with_stats,
)

router = APIRouter()

Manager = Annotated[CurrentUser, Depends(require("manager:view"))]
Db = Annotated[Session, Depends(get_db)]
Page = Annotated[PageParams, Depends(page_params)]


@router.get("/dashboard", response_model=ApiResponse[ManagerDashboard])
def dashboard(user: Manager, db: Db) -> ApiResponse[ManagerDashboard]:
    return ApiResponse(data=manager_dashboard(db, user))


@router.get("/pending-approvals", response_model=ApiResponse[PendingApprovalsData])
def pending_approvals(
    user: Manager, db: Db, page: Page
) -> ApiResponse[PendingApprovalsData]:
    """Team requests awaiting the manager's decision, oldest first."""
    advances, pagination = list_advances(
        db,
        user,
        AdvanceFilters(status="pending"),
        page.page,
        page.limit,
        sort="created_at",
    )
    return ApiResponse(
        data=PendingApprovalsData(
            pending_approvals=[to_out(a) for a in advances], pagination=pagination
        )
    )


@router.get("/team-requests", response_model=ApiResponse[TeamRequestsData])
def team_requests(
    user: Manager,
    db: Db,
    filters: Annotated[AdvanceFilters, Depends(advance_filters)],
    page: Page,
    sort: Annotated[str | None, Query()] = None,
) -> ApiResponse[TeamRequestsData]:
    advances, pagination = list_advances(db, user, filters, page.page, page.limit, sort)
    return ApiResponse(
        data=TeamRequestsData(
            requests=[to_out(a) for a in advances], pagination=pagination
        )
    )


@router.get("/team-members", response_model=ApiResponse[TeamMembersData])
def list_team_members(
    user: Manager,
    db: Db,
    search: Annotated[str | None, Query(max_length=100)] = None,
) -> ApiResponse[TeamMembersData]:
    members = with_stats(db, team_members(db, user, search))
    return ApiResponse(data=TeamMembersData(team_members=members, total=len(members)))


@router.get(
    "/team-members/{member_id}/requests",
    response_model=ApiResponse[TeamMemberRequestsData],
)
def team_member_requests(
    member_id: int,
    user: Manager,
    db: Db,
    filters: Annotated[AdvanceFilters, Depends(advance_filters)],
    page: Page,
) -> ApiResponse[TeamMemberRequestsData]:
    member = get_team_member(db, user, member_id)
    advances, pagination = list_advances(
        db,
        user,
        filters,
        page.page,
        page.limit,
        extra_criteria=[Advance.requester_id == member.id],
    )
    return ApiResponse(
        data=TeamMemberRequestsData(
            team_member=with_stats(db, [member])[0],
            requests=[to_out(a) for a in advances],
            pagination=pagination,
        )
    )


@router.get("/requests/{advance_id}", response_model=ApiResponse[AdvanceData])
def get_request(advance_id: int, user: Manager, db: Db) -> ApiResponse[AdvanceData]:
    advance = get_advance(db, advance_id)
    if not in_visibility_scope(user, advance.requester):
        raise NotFoundError("Cash advance request not found")
    return ApiResponse(data=AdvanceData(advance=to_out(advance)))


@router.put("/requests/{advance_id}/approve", response_model=ApiResponse[AdvanceData])
def approve_request(
    advance_id: int,
    user: Manager,
    db: Db,
    comment: Annotated[
        str | None, Body(embed=True, max_length=COMMENT_MAX_LENGTH)
    ] = None,
) -> ApiResponse[AdvanceData]:
    advance = apply_action(
        db, advance_id, ApproveRequest(decision="approved", comment=comment), user
    )
    return ApiResponse(
        message="Request approved successfully",
        data=AdvanceData(advance=to_out(advance)),
    )


@router.put("/requests/{advance_id}/reject", response_model=ApiResponse[AdvanceData])
def reject_request(
    advance_id: int,
    body: RejectRequest,
    user: Manager,
    db: Db,
) -> ApiResponse[AdvanceData]:
    advance = apply_action(
        db, advance_id, ApproveRequest(decision="rejected", comment=body.reason), user
    )
    return ApiResponse(
        message="Request rejected successfully",
        data=AdvanceData(advance=to_out(advance)),
    )


@router.get("/reports/summary", response_model=ApiResponse[ManagerReport])
def report_summary(
    user: Manager,
    db: Db,
    year: Annotated[int | None, Query(ge=2000, le=2100)] = None,
) -> ApiResponse[ManagerReport]:
    return ApiResponse(data=manager_report(db, user, year))
