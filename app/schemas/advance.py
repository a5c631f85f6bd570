"""
Pydantic schemas for cash-advance requests.

Three groups live here: request bodies, the lifecycle state as a tagged union
(one variant per status, so sub-records can only exist in the states that own
them), and the flattened output returned by the API.
"""

from datetime import UTC, date, datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.core.config import settings
from app.schemas.auth import UserRef
from app.schemas.common import Pagination

AdvanceStatus = Literal[
    "pending",
    "manager_approved",
    "finance_approved",
    "disbursed",
    "rejected",
    "retired",
]
Priority = Literal["low", "medium", "high", "urgent"]
Decision = Literal["approved", "rejected"]
ApproverRole = Literal["manager", "finance"]
DisbursementMethod = Literal["cash", "bank_transfer", "check"]

# Lifecycle order; also the order used for zero-filled status breakdowns.
ADVANCE_STATUSES: tuple[str, ...] = (
    "pending",
    "manager_approved",
    "finance_approved",
    "disbursed",
    "rejected",
    "retired",
)
TERMINAL_STATUSES: frozenset[str] = frozenset({"rejected", "retired"})
# Statuses counted as "approved" / "pending" in reports.
APPROVED_STATUSES: tuple[str, ...] = ("finance_approved", "disbursed", "retired")
PENDING_STATUSES: tuple[str, ...] = ("pending", "manager_approved")

PURPOSE_MIN_LENGTH = 10
PURPOSE_MAX_LENGTH = 500
DESCRIPTION_MAX_LENGTH = 1000
COMMENT_MAX_LENGTH = 500
REFERENCE_MAX_LENGTH = 255
EXPENSE_BREAKDOWN_MAX_LENGTH = 2000
# Smallest storable amount; anything lower would round to zero cents.
MIN_AMOUNT = 0.01


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# --- Request bodies ----------------------------------------------------------


class AdvanceCreate(BaseModel):
    """Body for POST /advances."""

    amount: float = Field(..., ge=MIN_AMOUNT, description="Requested amount")
    purpose: str = Field(
        ..., min_length=PURPOSE_MIN_LENGTH, max_length=PURPOSE_MAX_LENGTH
    )
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    expected_return_date: datetime = Field(
        ..., description="When the advance is expected to be retired"
    )
    priority: Priority = "medium"

    @field_validator("purpose", "description", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if v > settings.MAX_ADVANCE_AMOUNT:
            raise ValueError(
                f"amount must not exceed {settings.MAX_ADVANCE_AMOUNT:,.2f}"
            )
        return round(v, 2)

    @field_validator("expected_return_date")
    @classmethod
    def validate_future(cls, v: datetime) -> datetime:
        v = as_utc(v)
        if v <= datetime.now(UTC):
            raise ValueError("expected_return_date must be in the future")
        return v


class ApproveRequest(BaseModel):
    """Body for PUT /advances/{id}/approve; a rejection needs a comment."""

    decision: Decision = "approved"
    comment: str | None = Field(default=None, max_length=COMMENT_MAX_LENGTH)

    @model_validator(mode="after")
    def rejection_needs_comment(self) -> "ApproveRequest":
        if self.comment is not None:
            self.comment = self.comment.strip() or None
        if self.decision == "rejected" and not self.comment:
            raise ValueError("A comment is required when rejecting a request")
        return self


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=COMMENT_MAX_LENGTH)

    @field_validator("reason")
    @classmethod
    def non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Rejection reason is required")
        return v.strip()


class DisburseRequest(BaseModel):
    """Body for PUT /advances/{id}/disburse; amount defaults to the approved amount."""

    method: DisbursementMethod
    amount: float | None = Field(default=None, ge=MIN_AMOUNT)
    reference: str | None = Field(default=None, max_length=REFERENCE_MAX_LENGTH)


class Receipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(..., ge=0)
    receipt_date: date | None = None
    receipt_number: str | None = Field(default=None, max_length=100)


class RetireRequest(BaseModel):
    """
    Body for PUT /advances/{id}/retire.

    Either itemized receipts or total_expenses must be given; when both are,
    they must agree to the cent.
    """

    receipts: list[Receipt] = Field(default_factory=list, max_length=200)
    total_expenses: float | None = Field(default=None, ge=0)
    expense_breakdown: str | None = Field(
        default=None, max_length=EXPENSE_BREAKDOWN_MAX_LENGTH
    )

    @model_validator(mode="after")
    def totals_present_and_consistent(self) -> "RetireRequest":
        if not self.receipts and self.total_expenses is None:
            raise ValueError("Provide receipts or total_expenses")
        if self.receipts and self.total_expenses is not None:
            itemized = round(sum(r.amount for r in self.receipts), 2)
            if abs(itemized - self.total_expenses) >= 0.01:
                raise ValueError(
                    f"total_expenses ({self.total_expenses:.2f}) does not match "
                    f"the sum of receipts ({itemized:.2f})"
                )
        return self

    def spent(self) -> float:
        if self.total_expenses is not None:
            return round(self.total_expenses, 2)
        return round(sum(r.amount for r in self.receipts), 2)


# --- Lifecycle state ---------------------------------------------------------


class ApprovalEvent(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    approver_id: int
    role: ApproverRole
    decision: Decision
    comment: str | None = None
    decided_at: datetime


class Disbursement(BaseModel):
    model_config = ConfigDict(frozen=True)

    disbursed_by_id: int
    disbursed_at: datetime
    amount: float
    method: DisbursementMethod
    reference: str | None = None


class Retirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    retired_by_id: int
    retired_at: datetime
    receipts: tuple[Receipt, ...] = ()
    total_spent: float
    balance_returned: float
    expense_breakdown: str | None = None


class _DetailBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    requester_id: int
    amount: float
    history: tuple[ApprovalEvent, ...] = ()


class Pending(_DetailBase):
    status: Literal["pending"] = "pending"


class ManagerApproved(_DetailBase):
    status: Literal["manager_approved"] = "manager_approved"


class FinanceApproved(_DetailBase):
    status: Literal["finance_approved"] = "finance_approved"
    approval: ApprovalEvent


class Disbursed(_DetailBase):
    status: Literal["disbursed"] = "disbursed"
    approval: ApprovalEvent
    disbursement: Disbursement


class Retired(_DetailBase):
    status: Literal["retired"] = "retired"
    approval: ApprovalEvent
    disbursement: Disbursement
    retirement: Retirement


class Rejected(_DetailBase):
    status: Literal["rejected"] = "rejected"
    rejection: ApprovalEvent


AdvanceDetail = Annotated[
    Union[Pending, ManagerApproved, FinanceApproved, Disbursed, Retired, Rejected],
    Field(discriminator="status"),
]


# --- Responses ---------------------------------------------------------------


class AdvanceOut(BaseModel):
    id: int
    request_number: str
    requester: UserRef | None = None
    amount: float
    purpose: str
    description: str | None = None
    request_date: datetime
    expected_return_date: datetime
    priority: Priority
    status: AdvanceStatus
    approvals: list[ApprovalEvent] = Field(default_factory=list)
    disbursement: Disbursement | None = None
    retirement: Retirement | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AdvanceSummary(BaseModel):
    """Compact row for dashboard widgets."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    request_number: str
    amount: float
    purpose: str
    status: AdvanceStatus
    priority: Priority
    expected_return_date: datetime
    created_at: datetime | None = None


class AdvanceData(BaseModel):
    advance: AdvanceOut


class AdvanceListData(BaseModel):
    advances: list[AdvanceOut]
    pagination: Pagination


class AdvanceSummaryList(BaseModel):
    advances: list[AdvanceSummary]


class StatusStats(BaseModel):
    """Counts per lifecycle status plus totals; zeroed when nothing matches."""

    total_requests: int = 0
    total_amount: float = 0.0
    pending: int = 0
    manager_approved: int = 0
    finance_approved: int = 0
    disbursed: int = 0
    rejected: int = 0
    retired: int = 0


class StatusStatsData(BaseModel):
    stats: StatusStats
