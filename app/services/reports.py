"""Read-only aggregates over the role-scoped advance set (summaries, trends, pending, overdue)."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, case, extract, func, select
from sqlalchemy.orm import Session

from app.models import Advance, User
from app.schemas.advance import (
    ADVANCE_STATUSES,
    APPROVED_STATUSES,
    PENDING_STATUSES,
    StatusStats,
    as_utc,
)
from app.schemas.report import (
    DepartmentBucket,
    MonthlyTrend,
    MonthlyTrendsReport,
    OverdueAdvance,
    OverdueReturnsReport,
    OverdueSummary,
    PendingAdvancesReport,
    PendingCategorized,
    PendingSummary,
    StatusBucket,
    SummaryReport,
    SummaryTotals,
    UserActivityRow,
    UserActivityReport,
)
from app.services.advances import to_out
from app.services.queries import AdvanceFilters, advances_query, scoped_criteria

if TYPE_CHECKING:
    from app.schemas.auth import CurrentUser


def _money(value: Any) -> float:
    return round(float(value or 0), 2)


def _sum_where(condition: ColumnElement[bool], value: Any) -> Any:
    """SUM(value) over rows matching condition, 0 when none."""
    return func.coalesce(func.sum(case((condition, value), else_=0)), 0)


def _count_where(condition: ColumnElement[bool]) -> Any:
    return _sum_where(condition, 1)


def _joined(*columns: Any) -> Any:
    return select(*columns).select_from(Advance).join(
        User, Advance.requester_id == User.id
    )


def status_counts(
    db: Session, criteria: list[ColumnElement[bool]]
) -> dict[str, tuple[int, float]]:
    """{status: (count, total_amount)} for advances matching criteria."""
    rows = db.execute(
        _joined(
            Advance.status,
            func.count(Advance.id),
            func.coalesce(func.sum(Advance.amount), 0),
        )
        .where(*criteria)
        .group_by(Advance.status)
    ).all()
    return {status: (int(count), _money(total)) for status, count, total in rows}


def status_stats(db: Session, criteria: list[ColumnElement[bool]]) -> StatusStats:
    """Per-status counts plus totals; every status present, zero when empty."""
    counts = status_counts(db, criteria)
    return StatusStats(
        total_requests=sum(c for c, _ in counts.values()),
        total_amount=_money(sum(a for _, a in counts.values())),
        **{status: counts.get(status, (0, 0.0))[0] for status in ADVANCE_STATUSES},
    )


def status_breakdown(
    db: Session, criteria: list[ColumnElement[bool]]
) -> list[StatusBucket]:
    counts = status_counts(db, criteria)
    return [
        StatusBucket(
            status=status,
            count=counts.get(status, (0, 0.0))[0],
            total_amount=counts.get(status, (0, 0.0))[1],
        )
        for status in ADVANCE_STATUSES
    ]


def summary_totals(
    db: Session, criteria: list[ColumnElement[bool]]
) -> SummaryTotals:
    total, amount, approved, pending, disbursed = db.execute(
        _joined(
            func.count(Advance.id),
            func.coalesce(func.sum(Advance.amount), 0),
            _sum_where(Advance.status.in_(APPROVED_STATUSES), Advance.amount),
            _sum_where(Advance.status.in_(PENDING_STATUSES), Advance.amount),
            _sum_where(
                Advance.status.in_(("disbursed", "retired")),
                func.coalesce(Advance.disbursed_amount, 0),
            ),
        ).where(*criteria)
    ).one()
    return SummaryTotals(
        total_requests=int(total or 0),
        total_amount=_money(amount),
        approved_amount=_money(approved),
        pending_amount=_money(pending),
        disbursed_amount=_money(disbursed),
    )


def department_breakdown(
    db: Session, criteria: list[ColumnElement[bool]]
) -> list[DepartmentBucket]:
    total_amount = func.coalesce(func.sum(Advance.amount), 0)
    rows = db.execute(
        _joined(User.department, func.count(Advance.id), total_amount)
        .where(*criteria)
        .group_by(User.department)
        .order_by(total_amount.desc(), User.department)
    ).all()
    return [
        DepartmentBucket(department=dept, count=int(count), total_amount=_money(amount))
        for dept, count, amount in rows
    ]


def summary_report(
    db: Session,
    user: "CurrentUser",
    filters: AdvanceFilters,
    department: str | None = None,
) -> SummaryReport:
    criteria = scoped_criteria(user, filters)
    if department and department != "all":
        criteria.append(User.department == department)
    return SummaryReport(
        summary=summary_totals(db, criteria),
        status_breakdown=status_breakdown(db, criteria),
        department_breakdown=department_breakdown(db, criteria),
    )


def user_activity(
    db: Session,
    user: "CurrentUser",
    filters: AdvanceFilters,
    limit: int = 20,
) -> UserActivityReport:
    """Per-requester totals, biggest spenders first."""
    total_amount = func.coalesce(func.sum(Advance.amount), 0)
    rows = db.execute(
        _joined(
            User.id,
            User.employee_id,
            User.first_name,
            User.last_name,
            User.department,
            func.count(Advance.id),
            total_amount,
            _count_where(Advance.status.in_(APPROVED_STATUSES)),
            _count_where(Advance.status.in_(PENDING_STATUSES)),
            _count_where(Advance.status == "rejected"),
        )
        .where(*scoped_criteria(user, filters))
        .group_by(
            User.id, User.employee_id, User.first_name, User.last_name, User.department
        )
        .order_by(total_amount.desc(), User.id)
        .limit(limit)
    ).all()
    return UserActivityReport(
        user_activity=[
            UserActivityRow(
                user_id=uid,
                employee_id=employee_id,
                full_name=f"{first} {last}",
                department=dept,
                total_requests=int(count),
                total_amount=_money(amount),
                approved_requests=int(approved),
                pending_requests=int(pending),
                rejected_requests=int(rejected),
            )
            for uid, employee_id, first, last, dept, count, amount, approved, pending, rejected in rows
        ]
    )


def monthly_trends(
    db: Session,
    criteria: list[ColumnElement[bool]],
    year: int,
) -> list[MonthlyTrend]:
    """Twelve months of year (zero-filled) for advances matching criteria."""
    start = datetime(year, 1, 1, tzinfo=UTC)
    end = datetime(year + 1, 1, 1, tzinfo=UTC)
    month = extract("month", Advance.request_date)
    approved = Advance.status.in_(APPROVED_STATUSES)
    rows = db.execute(
        _joined(
            month,
            func.count(Advance.id),
            func.coalesce(func.sum(Advance.amount), 0),
            _count_where(approved),
            _sum_where(approved, Advance.amount),
        )
        .where(*criteria, Advance.request_date >= start, Advance.request_date < end)
        .group_by(month)
    ).all()
    by_month = {int(m): row for m, *row in rows}

    trends: list[MonthlyTrend] = []
    for m in range(1, 13):
        count, amount, approved_count, approved_amount = by_month.get(m, (0, 0, 0, 0))
        count = int(count)
        approved_count = int(approved_count)
        trends.append(
            MonthlyTrend(
                month=m,
                year=year,
                total_requests=count,
                total_amount=_money(amount),
                approved_requests=approved_count,
                approved_amount=_money(approved_amount),
                approval_rate=round(approved_count / count * 100, 2) if count else 0.0,
            )
        )
    return trends


def monthly_trends_report(
    db: Session, user: "CurrentUser", year: int
) -> MonthlyTrendsReport:
    return MonthlyTrendsReport(
        monthly_trends=monthly_trends(db, scoped_criteria(user), year),
        year=year,
    )


def pending_advances(db: Session, user: "CurrentUser") -> PendingAdvancesReport:
    """Requests still awaiting a decision, oldest first, split by stage."""
    stmt = advances_query(
        scoped_criteria(user) + [Advance.status.in_(PENDING_STATUSES)]
    ).order_by(Advance.request_date.asc(), Advance.id.asc())
    advances = [to_out(a) for a in db.scalars(stmt)]
    awaiting_manager = [a for a in advances if a.status == "pending"]
    awaiting_finance = [a for a in advances if a.status == "manager_approved"]
    return PendingAdvancesReport(
        pending_advances=advances,
        categorized=PendingCategorized(
            pending=awaiting_manager, manager_approved=awaiting_finance
        ),
        summary=PendingSummary(
            total_pending=len(advances),
            awaiting_manager_approval=len(awaiting_manager),
            awaiting_finance_approval=len(awaiting_finance),
            total_pending_amount=_money(sum(a.amount for a in advances)),
        ),
    )


def overdue_advances(
    db: Session,
    now: datetime,
    criteria: list[ColumnElement[bool]] | None = None,
) -> list[Advance]:
    """Disbursed advances whose expected return date has passed, most overdue first."""
    stmt = advances_query(
        list(criteria or [])
        + [Advance.status == "disbursed", Advance.expected_return_date < now]
    ).order_by(Advance.expected_return_date.asc(), Advance.id.asc())
    return list(db.scalars(stmt))


def overdue_returns(
    db: Session, user: "CurrentUser", now: datetime | None = None
) -> OverdueReturnsReport:
    now = now or datetime.now(UTC)
    rows: list[OverdueAdvance] = []
    total_amount = 0.0
    for advance in overdue_advances(db, now, scoped_criteria(user)):
        out = to_out(advance)
        days = (now - as_utc(advance.expected_return_date)).days
        rows.append(OverdueAdvance(**out.model_dump(), days_overdue=days))
        total_amount += advance.disbursed_amount or advance.amount
    return OverdueReturnsReport(
        overdue_advances=rows,
        summary=OverdueSummary(
            total_overdue=len(rows), total_overdue_amount=_money(total_amount)
        ),
        generated_at=now,
    )
