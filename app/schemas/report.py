"""Pydantic schemas for reporting and dashboard aggregates."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.advance import AdvanceOut, StatusStats
from app.schemas.auth import UserOut
from app.schemas.common import Pagination


class StatusBucket(BaseModel):
    status: str
    count: int = 0
    total_amount: float = 0.0


class DepartmentBucket(BaseModel):
    department: str
    count: int = 0
    total_amount: float = 0.0


class SummaryTotals(BaseModel):
    total_requests: int = 0
    total_amount: float = 0.0
    approved_amount: float = 0.0
    pending_amount: float = 0.0
    disbursed_amount: float = 0.0


class SummaryReport(BaseModel):
    """GET /reports/summary: totals plus status and department breakdowns."""

    summary: SummaryTotals
    status_breakdown: list[StatusBucket]
    department_breakdown: list[DepartmentBucket]


class UserActivityRow(BaseModel):
    user_id: int
    employee_id: str
    full_name: str
    department: str
    total_requests: int = 0
    total_amount: float = 0.0
    approved_requests: int = 0
    pending_requests: int = 0
    rejected_requests: int = 0


class UserActivityReport(BaseModel):
    user_activity: list[UserActivityRow]


class MonthlyTrend(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int
    total_requests: int = 0
    total_amount: float = 0.0
    approved_requests: int = 0
    approved_amount: float = 0.0
    approval_rate: float = Field(default=0.0, description="Approved / total, in percent")


class MonthlyTrendsReport(BaseModel):
    monthly_trends: list[MonthlyTrend]
    year: int


class PendingSummary(BaseModel):
    total_pending: int = 0
    awaiting_manager_approval: int = 0
    awaiting_finance_approval: int = 0
    total_pending_amount: float = 0.0


class PendingCategorized(BaseModel):
    pending: list[AdvanceOut]
    manager_approved: list[AdvanceOut]


class PendingAdvancesReport(BaseModel):
    pending_advances: list[AdvanceOut]
    categorized: PendingCategorized
    summary: PendingSummary


class OverdueAdvance(AdvanceOut):
    days_overdue: int


class OverdueSummary(BaseModel):
    total_overdue: int = 0
    total_overdue_amount: float = 0.0


class OverdueReturnsReport(BaseModel):
    overdue_advances: list[OverdueAdvance]
    summary: OverdueSummary
    generated_at: datetime


# --- Manager views -------------------------------------------------------------


class ManagerDashboardStats(BaseModel):
    pending_approvals: int = 0
    team_members: int = 0
    total_team_requests: int = 0
    approved_requests: int = 0
    pending_requests: int = 0
    total_amount: float = 0.0


class ManagerDashboard(BaseModel):
    stats: ManagerDashboardStats
    pending_approvals: list[AdvanceOut]
    team_members: list[UserOut]
    recent_team_requests: list[AdvanceOut]


class PendingApprovalsData(BaseModel):
    pending_approvals: list[AdvanceOut]
    pagination: Pagination


class TeamRequestsData(BaseModel):
    requests: list[AdvanceOut]
    pagination: Pagination


class TeamMember(UserOut):
    stats: StatusStats


class TeamMembersData(BaseModel):
    team_members: list[TeamMember]
    total: int


class TeamMemberRequestsData(BaseModel):
    team_member: TeamMember
    requests: list[AdvanceOut]
    pagination: Pagination


class ManagerReport(BaseModel):
    summary: SummaryTotals
    status_breakdown: list[StatusBucket]
    monthly_trends: list[MonthlyTrend]
    team_members_count: int
