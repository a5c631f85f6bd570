"""Manager views: team membership, per-member stats, dashboard and team report."""

from collections import defaultdict
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models import Advance, User
from app.schemas.advance import ADVANCE_STATUSES, APPROVED_STATUSES, PENDING_STATUSES, StatusStats
from app.schemas.auth import UserOut
from app.schemas.report import (
    ManagerDashboard,
    ManagerDashboardStats,
    ManagerReport,
    TeamMember,
)
from app.services.advances import to_out
from app.services.queries import advances_query, contains, recent_advances, visibility_criteria
from app.services.reports import monthly_trends, status_breakdown, status_stats, summary_totals

if TYPE_CHECKING:
    from app.schemas.auth import CurrentUser

DASHBOARD_LIST_LIMIT = 5


def team_members(
    db: Session, manager: "CurrentUser", search: str | None = None
) -> list[User]:
    """Staff users in the manager's department, by name."""
    stmt = select(User).where(
        User.department == manager.department, User.role == "staff"
    )
    if search and search.strip():
        term = search.strip()
        stmt = stmt.where(
            or_(
                contains(User.first_name, term),
                contains(User.last_name, term),
                contains(User.email, term),
                contains(User.employee_id, term),
            )
        )
    return list(db.scalars(stmt.order_by(User.first_name, User.last_name, User.id)))


def get_team_member(db: Session, manager: "CurrentUser", member_id: int) -> User:
    member = db.get(User, member_id)
    if (
        member is None
        or member.role != "staff"
        or member.department != manager.department
    ):
        raise NotFoundError("Team member not found")
    return member


def member_stats(db: Session, member_ids: list[int]) -> dict[int, StatusStats]:
    """StatusStats per requester id, zeroed for members with no requests."""
    if not member_ids:
        return {}
    rows = db.execute(
        select(
            Advance.requester_id,
            Advance.status,
            func.count(Advance.id),
            func.coalesce(func.sum(Advance.amount), 0),
        )
        .where(Advance.requester_id.in_(member_ids))
        .group_by(Advance.requester_id, Advance.status)
    ).all()

    counts: dict[int, dict[str, int]] = defaultdict(dict)
    amounts: dict[int, float] = defaultdict(float)
    for requester_id, status, count, amount in rows:
        counts[requester_id][status] = int(count)
        amounts[requester_id] += float(amount or 0)

    return {
        member_id: StatusStats(
            total_requests=sum(counts[member_id].values()),
            total_amount=round(amounts[member_id], 2),
            **{s: counts[member_id].get(s, 0) for s in ADVANCE_STATUSES},
        )
        for member_id in member_ids
    }


def with_stats(db: Session, members: list[User]) -> list[TeamMember]:
    stats = member_stats(db, [m.id for m in members])
    return [
        TeamMember(**UserOut.model_validate(m).model_dump(), stats=stats[m.id])
        for m in members
    ]


def manager_dashboard(db: Session, manager: "CurrentUser") -> ManagerDashboard:
    scope = visibility_criteria(manager)
    members = team_members(db, manager)
    stats = status_stats(db, scope)
    awaiting = list(
        db.scalars(
            advances_query(scope + [Advance.status == "pending"])
            .order_by(Advance.created_at.asc(), Advance.id.asc())
            .limit(DASHBOARD_LIST_LIMIT)
        )
    )
    return ManagerDashboard(
        stats=ManagerDashboardStats(
            pending_approvals=stats.pending,
            team_members=len(members),
            total_team_requests=stats.total_requests,
            approved_requests=sum(getattr(stats, s) for s in APPROVED_STATUSES),
            pending_requests=sum(getattr(stats, s) for s in PENDING_STATUSES),
            total_amount=stats.total_amount,
        ),
        pending_approvals=[to_out(a) for a in awaiting],
        team_members=[UserOut.model_validate(m) for m in members[:DASHBOARD_LIST_LIMIT]],
        recent_team_requests=[
            to_out(a) for a in recent_advances(db, scope, DASHBOARD_LIST_LIMIT)
        ],
    )


def manager_report(
    db: Session, manager: "CurrentUser", year: int | None = None
) -> ManagerReport:
    scope = visibility_criteria(manager)
    return ManagerReport(
        summary=summary_totals(db, scope),
        status_breakdown=status_breakdown(db, scope),
        monthly_trends=monthly_trends(db, scope, year or datetime.now(UTC).year),
        team_members_count=len(team_members(db, manager)),
    )
