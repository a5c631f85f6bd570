"""
Advance lifecycle state machine.

pending -> manager_approved -> finance_approved -> disbursed -> retired, with
rejected reachable from pending (manager) or manager_approved (finance).
rejected and retired are absorbing.

transition() is pure: it takes the current AdvanceDetail, an action and the
acting user, and returns the next AdvanceDetail or raises. Persisting the
result is the caller's job (see app.services.advances).
"""

from datetime import datetime
from typing import TYPE_CHECKING

from app.core.errors import AuthorizationError, StateConflictError, ValidationError, field_errors
from app.schemas.advance import (
    TERMINAL_STATUSES,
    AdvanceDetail,
    ApprovalEvent,
    ApproveRequest,
    Disbursed,
    DisburseRequest,
    Disbursement,
    FinanceApproved,
    ManagerApproved,
    Rejected,
    Retired,
    RetireRequest,
    Retirement,
)

if TYPE_CHECKING:
    from app.schemas.auth import CurrentUser

# The only status each approver role may act on.
APPROVAL_STAGE: dict[str, str] = {
    "manager": "pending",
    "finance": "manager_approved",
}
DISBURSER_ROLES: frozenset[str] = frozenset({"finance", "admin"})

Action = ApproveRequest | DisburseRequest | RetireRequest


def can_be_approved_by(detail: AdvanceDetail, role: str) -> bool:
    """True if an approver with role may approve or reject detail right now."""
    if detail.status in TERMINAL_STATUSES:
        return False
    return APPROVAL_STAGE.get(role) == detail.status


def transition(
    detail: AdvanceDetail,
    action: Action,
    actor: "CurrentUser",
    at: datetime,
) -> AdvanceDetail:
    """Apply action to detail on behalf of actor at time at; return the new state."""
    if isinstance(action, ApproveRequest):
        return _approve(detail, action, actor, at)
    if isinstance(action, DisburseRequest):
        return _disburse(detail, action, actor, at)
    if isinstance(action, RetireRequest):
        return _retire(detail, action, actor, at)
    raise TypeError(f"Unsupported lifecycle action: {type(action).__name__}")


def _ensure_not_terminal(detail: AdvanceDetail) -> None:
    if detail.status in TERMINAL_STATUSES:
        raise StateConflictError(
            f"Request is already {detail.status}; no further changes are allowed.",
            current_status=detail.status,
        )


def _common(detail: AdvanceDetail) -> dict:
    return {
        "requester_id": detail.requester_id,
        "amount": detail.amount,
        "history": detail.history,
    }


def _approve(
    detail: AdvanceDetail,
    action: ApproveRequest,
    actor: "CurrentUser",
    at: datetime,
) -> AdvanceDetail:
    expected = APPROVAL_STAGE.get(actor.role)
    if expected is None:
        raise AuthorizationError("Only managers and finance officers can approve requests.")
    if actor.id == detail.requester_id:
        raise AuthorizationError("You cannot approve or reject your own request.")
    _ensure_not_terminal(detail)
    if not can_be_approved_by(detail, actor.role):
        raise StateConflictError(
            f"A {actor.role} can only act on {expected} requests.",
            current_status=detail.status,
        )

    event = ApprovalEvent(
        approver_id=actor.id,
        role=actor.role,
        decision=action.decision,
        comment=action.comment,
        decided_at=at,
    )
    # The event is recorded first; the next status is derived from it alone.
    common = _common(detail)
    common["history"] = detail.history + (event,)
    if event.decision == "rejected":
        return Rejected(**common, rejection=event)
    if event.role == "manager":
        return ManagerApproved(**common)
    return FinanceApproved(**common, approval=event)


def _disburse(
    detail: AdvanceDetail,
    action: DisburseRequest,
    actor: "CurrentUser",
    at: datetime,
) -> AdvanceDetail:
    if actor.role not in DISBURSER_ROLES:
        raise AuthorizationError("Only finance officers or admins can disburse funds.")
    _ensure_not_terminal(detail)
    if not isinstance(detail, FinanceApproved):
        raise StateConflictError(
            "Only finance-approved requests can be disbursed.",
            current_status=detail.status,
        )

    amount = round(action.amount if action.amount is not None else detail.amount, 2)
    if amount > detail.amount:
        raise ValidationError(
            "Validation error",
            field_errors([("amount", "Disbursed amount cannot exceed the approved amount")]),
        )
    disbursement = Disbursement(
        disbursed_by_id=actor.id,
        disbursed_at=at,
        amount=amount,
        method=action.method,
        reference=action.reference,
    )
    return Disbursed(**_common(detail), approval=detail.approval, disbursement=disbursement)


def _retire(
    detail: AdvanceDetail,
    action: RetireRequest,
    actor: "CurrentUser",
    at: datetime,
) -> AdvanceDetail:
    if actor.id != detail.requester_id:
        raise AuthorizationError("Only the requester can retire an advance.")
    _ensure_not_terminal(detail)
    if not isinstance(detail, Disbursed):
        raise StateConflictError(
            "Only disbursed advances can be retired.",
            current_status=detail.status,
        )

    total_spent = action.spent()
    retirement = Retirement(
        retired_by_id=actor.id,
        retired_at=at,
        receipts=tuple(action.receipts),
        total_spent=total_spent,
        balance_returned=round(detail.disbursement.amount - total_spent, 2),
        expense_breakdown=action.expense_breakdown,
    )
    return Retired(
        **_common(detail),
        approval=detail.approval,
        disbursement=detail.disbursement,
        retirement=retirement,
    )
