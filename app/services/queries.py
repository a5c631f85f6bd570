"""Role-scoped filtering, sorting and offset pagination over advances and users."""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from sqlalchemy import ColumnElement, Select, func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.core.errors import ValidationError, field_errors
from app.models import Advance, User
from app.schemas.advance import as_utc
from app.schemas.common import Pagination
from app.services.policy import UNSCOPED_ROLES

if TYPE_CHECKING:
    from app.schemas.auth import CurrentUser

DEFAULT_SORT = "-created_at"

ADVANCE_SORT_FIELDS: dict[str, Any] = {
    "created_at": Advance.created_at,
    "request_date": Advance.request_date,
    "expected_return_date": Advance.expected_return_date,
    "amount": Advance.amount,
    "status": Advance.status,
    "priority": Advance.priority,
    "request_number": Advance.request_number,
}


class AdvanceFilters(BaseModel):
    """Caller-supplied filters; always intersected with the visibility scope."""

    status: str | None = None
    priority: str | None = None
    search: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains(column: Any, term: str) -> ColumnElement[bool]:
    """Case-insensitive substring match."""
    return column.ilike(f"%{escape_like(term)}%", escape="\\")


def team_member_ids(department: str) -> Select:
    """Ids of staff users in department (a manager's team)."""
    return select(User.id).where(User.department == department, User.role == "staff")


def visibility_criteria(user: "CurrentUser") -> list[ColumnElement[bool]]:
    """WHERE clauses restricting advances to what user may see."""
    if user.role in UNSCOPED_ROLES:
        return []
    if user.role == "manager":
        return [Advance.requester_id.in_(team_member_ids(user.department))]
    return [Advance.requester_id == user.id]


def filter_criteria(filters: AdvanceFilters) -> list[ColumnElement[bool]]:
    """
    WHERE clauses for caller filters. Assumes User is joined as the requester
    (search matches requester name and employee id).
    """
    criteria: list[ColumnElement[bool]] = []
    if filters.status and filters.status != "all":
        criteria.append(Advance.status == filters.status)
    if filters.priority and filters.priority != "all":
        criteria.append(Advance.priority == filters.priority)
    if filters.search and filters.search.strip():
        term = filters.search.strip()
        criteria.append(
            or_(
                contains(Advance.purpose, term),
                contains(Advance.description, term),
                contains(Advance.request_number, term),
                contains(User.first_name, term),
                contains(User.last_name, term),
                contains(User.employee_id, term),
            )
        )
    if filters.start_date is not None:
        criteria.append(Advance.request_date >= as_utc(filters.start_date))
    if filters.end_date is not None:
        criteria.append(Advance.request_date <= as_utc(filters.end_date))
    return criteria


def scoped_criteria(
    user: "CurrentUser", filters: AdvanceFilters | None = None
) -> list[ColumnElement[bool]]:
    """Visibility scope AND caller filters; filters can only narrow the scope."""
    criteria = visibility_criteria(user)
    if filters is not None:
        criteria.extend(filter_criteria(filters))
    return criteria


def order_by_clause(sort: str | None, fields: dict[str, Any]) -> Any:
    """Parse 'field' / '-field' into an ORDER BY clause; ValidationError if unknown."""
    sort = (sort or DEFAULT_SORT).strip()
    descending = sort.startswith("-")
    name = sort.lstrip("-+")
    column = fields.get(name)
    if column is None:
        raise ValidationError(
            "Validation error",
            field_errors([("sort", f"sort must be one of {sorted(fields)} (prefix - for descending)")]),
        )
    return column.desc() if descending else column.asc()


def advances_query(criteria: list[ColumnElement[bool]]) -> Select:
    """SELECT advances joined to their requester, with relationships eager-loaded."""
    return (
        select(Advance)
        .join(User, Advance.requester_id == User.id)
        .where(*criteria)
        .options(selectinload(Advance.requester), selectinload(Advance.approvals))
    )


def paginate(
    db: Session, stmt: Select, page: int, page_size: int
) -> tuple[list[Any], Pagination]:
    """Run stmt for one 1-indexed page and count the full result set."""
    total = db.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ) or 0
    items = list(db.scalars(stmt.offset((page - 1) * page_size).limit(page_size)))
    return items, Pagination.build(page, page_size, total)


def list_advances(
    db: Session,
    user: "CurrentUser",
    filters: AdvanceFilters,
    page: int,
    page_size: int,
    sort: str | None = None,
    extra_criteria: list[ColumnElement[bool]] | None = None,
) -> tuple[list[Advance], Pagination]:
    """One page of advances visible to user, filtered and sorted."""
    criteria = scoped_criteria(user, filters) + list(extra_criteria or [])
    stmt = advances_query(criteria).order_by(
        order_by_clause(sort, ADVANCE_SORT_FIELDS), Advance.id.desc()
    )
    return paginate(db, stmt, page, page_size)


def recent_advances(
    db: Session, criteria: list[ColumnElement[bool]], limit: int
) -> list[Advance]:
    """Most recently created advances matching criteria."""
    stmt = (
        advances_query(criteria)
        .order_by(Advance.created_at.desc(), Advance.id.desc())
        .limit(limit)
    )
    return list(db.scalars(stmt))


class UserFilters(BaseModel):
    role: str | None = None
    department: str | None = None
    is_active: bool | None = None
    search: str | None = None


def user_filter_criteria(filters: UserFilters) -> list[ColumnElement[bool]]:
    criteria: list[ColumnElement[bool]] = []
    if filters.role and filters.role != "all":
        criteria.append(User.role == filters.role)
    if filters.department and filters.department != "all":
        criteria.append(contains(User.department, filters.department))
    if filters.is_active is not None:
        criteria.append(User.is_active == filters.is_active)
    if filters.search and filters.search.strip():
        term = filters.search.strip()
        criteria.append(
            or_(
                contains(User.first_name, term),
                contains(User.last_name, term),
                contains(User.email, term),
                contains(User.employee_id, term),
            )
        )
    return criteria


def list_users(
    db: Session, filters: UserFilters, page: int, page_size: int
) -> tuple[list[User], Pagination]:
    stmt = (
        select(User)
        .where(*user_filter_criteria(filters))
        .order_by(User.created_at.desc(), User.id.desc())
    )
    return paginate(db, stmt, page, page_size)
