"""Persistence for the advance lifecycle: creation with request numbering, and guarded transitions."""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import TypeAdapter
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import get_settings
from app.core.database import violated_unique_field
from app.core.errors import (
    AuthorizationError,
    DuplicateError,
    NotFoundError,
    StateConflictError,
)
from app.models import Advance, AdvanceApproval, User
from app.schemas.advance import (
    AdvanceCreate,
    AdvanceDetail,
    AdvanceOut,
    ApprovalEvent,
    ApproveRequest,
    Disbursement,
    Receipt,
    Retirement,
    as_utc,
)
from app.schemas.auth import UserRef
from app.services.lifecycle import Action, transition
from app.services.policy import in_visibility_scope

if TYPE_CHECKING:
    from app.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)

SEQUENCE_DIGITS = 4
MAX_SEQUENCE = 10**SEQUENCE_DIGITS - 1

_detail_adapter: TypeAdapter[AdvanceDetail] = TypeAdapter(AdvanceDetail)


def month_prefix(prefix: str, at: datetime) -> str:
    """Request-number prefix for the calendar month of at, e.g. ADV202610."""
    return f"{prefix}{at:%Y%m}"


def next_request_number(db: Session, prefix: str) -> str:
    """Successor of the highest request number issued under prefix (read-then-write; see create_advance)."""
    last = db.scalar(
        select(Advance.request_number)
        .where(Advance.request_number.like(f"{prefix}%"))
        .order_by(Advance.request_number.desc())
        .limit(1)
    )
    sequence = int(last[-SEQUENCE_DIGITS:]) + 1 if last else 1
    if sequence > MAX_SEQUENCE:
        raise StateConflictError(
            f"Request number sequence for {prefix} is exhausted."
        )
    return f"{prefix}{sequence:0{SEQUENCE_DIGITS}d}"


def create_advance(db: Session, requester: "CurrentUser", body: AdvanceCreate) -> Advance:
    """
    Insert a new pending advance with a fresh month-scoped request number.

    Concurrent creators may compute the same number; the unique constraint on
    request_number rejects all but one and the losers re-read and retry, up to
    REQUEST_NUMBER_MAX_ATTEMPTS times.
    """
    settings = get_settings()
    now = datetime.now(UTC)
    prefix = month_prefix(settings.REQUEST_NUMBER_PREFIX, now)

    for attempt in range(1, settings.REQUEST_NUMBER_MAX_ATTEMPTS + 1):
        advance = Advance(
            request_number=next_request_number(db, prefix),
            requester_id=requester.id,
            amount=body.amount,
            purpose=body.purpose,
            description=body.description,
            request_date=now,
            expected_return_date=body.expected_return_date,
            priority=body.priority,
            status="pending",
        )
        db.add(advance)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if violated_unique_field(e, ("request_number",)) is None:
                raise
            logger.warning(
                "Request number collision; retrying",
                extra={"request_number": advance.request_number, "attempt": attempt},
            )
            continue
        logger.info(
            "Advance created",
            extra={
                "advance_id": advance.id,
                "request_number": advance.request_number,
                "requester_id": requester.id,
            },
        )
        return get_advance(db, advance.id)

    raise DuplicateError(
        "Could not allocate a unique request number; please retry.",
        field="request_number",
    )


def get_advance(db: Session, advance_id: int) -> Advance:
    """Load an advance with requester and approvals; NotFoundError if absent."""
    advance = db.scalar(
        select(Advance)
        .where(Advance.id == advance_id)
        .options(selectinload(Advance.requester), selectinload(Advance.approvals))
        .execution_options(populate_existing=True)
    )
    if advance is None:
        raise NotFoundError("Cash advance request not found")
    return advance


def detail_from_row(advance: Advance) -> AdvanceDetail:
    """Rebuild the tagged lifecycle state from a stored row (validates its consistency)."""
    history = tuple(ApprovalEvent.model_validate(a) for a in advance.approvals)
    data: dict = {
        "status": advance.status,
        "requester_id": advance.requester_id,
        "amount": advance.amount,
        "history": history,
    }
    finance_approvals = [
        e for e in history if e.role == "finance" and e.decision == "approved"
    ]
    rejections = [e for e in history if e.decision == "rejected"]
    if finance_approvals:
        data["approval"] = finance_approvals[-1]
    if rejections:
        data["rejection"] = rejections[-1]
    if advance.disbursed_at is not None:
        data["disbursement"] = Disbursement(
            disbursed_by_id=advance.disbursed_by_id,
            disbursed_at=as_utc(advance.disbursed_at),
            amount=advance.disbursed_amount,
            method=advance.disbursement_method,
            reference=advance.disbursement_reference,
        )
    if advance.retired_at is not None:
        data["retirement"] = Retirement(
            retired_by_id=advance.retired_by_id,
            retired_at=as_utc(advance.retired_at),
            receipts=tuple(Receipt.model_validate(r) for r in advance.receipts or []),
            total_spent=advance.total_spent,
            balance_returned=advance.balance_returned,
            expense_breakdown=advance.expense_breakdown,
        )
    return _detail_adapter.validate_python(data)


def row_values(detail: AdvanceDetail) -> dict:
    """Column values that represent detail (status plus sub-record columns)."""
    values: dict = {"status": detail.status}
    disbursement = getattr(detail, "disbursement", None)
    if disbursement is not None:
        values.update(
            disbursed_by_id=disbursement.disbursed_by_id,
            disbursed_at=disbursement.disbursed_at,
            disbursed_amount=disbursement.amount,
            disbursement_method=disbursement.method,
            disbursement_reference=disbursement.reference,
        )
    retirement = getattr(detail, "retirement", None)
    if retirement is not None:
        values.update(
            retired_by_id=retirement.retired_by_id,
            retired_at=retirement.retired_at,
            receipts=[r.model_dump(mode="json") for r in retirement.receipts],
            total_spent=retirement.total_spent,
            balance_returned=retirement.balance_returned,
            expense_breakdown=retirement.expense_breakdown,
        )
    return values


def commit_transition(
    db: Session,
    advance_id: int,
    observed_status: str,
    new_detail: AdvanceDetail,
    event: ApprovalEvent | None = None,
) -> None:
    """
    Persist new_detail if the stored status still equals observed_status.

    The approval event (if any) is inserted first and the status write is
    conditioned on the previously observed status, all in one transaction.
    On a lost race everything is rolled back and StateConflictError carries
    the status that won.
    """
    if event is not None:
        db.add(AdvanceApproval(advance_id=advance_id, **event.model_dump()))
        db.flush()
    result = db.execute(
        update(Advance)
        .where(Advance.id == advance_id, Advance.status == observed_status)
        .values(**row_values(new_detail))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        current = db.scalar(select(Advance.status).where(Advance.id == advance_id))
        logger.warning(
            "Advance transition lost a concurrent update",
            extra={
                "advance_id": advance_id,
                "expected_status": observed_status,
                "current_status": current,
            },
        )
        raise StateConflictError(
            "Request is no longer in the expected state.", current_status=current
        )
    db.commit()


def apply_action(
    db: Session,
    advance_id: int,
    action: Action,
    actor: "CurrentUser",
) -> Advance:
    """Load, guard, transition and persist one lifecycle action; returns the fresh row."""
    advance = get_advance(db, advance_id)
    if (
        isinstance(action, ApproveRequest)
        and actor.role == "manager"
        and not in_visibility_scope(actor, advance.requester)
    ):
        raise AuthorizationError("You can only act on requests from your own team.")

    current = detail_from_row(advance)
    new_detail = transition(current, action, actor, at=datetime.now(UTC))
    event = (
        new_detail.history[-1]
        if len(new_detail.history) > len(current.history)
        else None
    )
    commit_transition(db, advance.id, current.status, new_detail, event)
    logger.info(
        "Advance transitioned",
        extra={
            "advance_id": advance.id,
            "from_status": current.status,
            "to_status": new_detail.status,
            "actor_id": actor.id,
        },
    )
    return get_advance(db, advance_id)


def to_out(advance: Advance) -> AdvanceOut:
    """Flatten an advance row (through its lifecycle state) into the API shape."""
    detail = detail_from_row(advance)
    requester: User | None = advance.requester
    return AdvanceOut(
        id=advance.id,
        request_number=advance.request_number,
        requester=UserRef.model_validate(requester) if requester else None,
        amount=advance.amount,
        purpose=advance.purpose,
        description=advance.description,
        request_date=as_utc(advance.request_date),
        expected_return_date=as_utc(advance.expected_return_date),
        priority=advance.priority,
        status=detail.status,
        approvals=list(detail.history),
        disbursement=getattr(detail, "disbursement", None),
        retirement=getattr(detail, "retirement", None),
        created_at=advance.created_at,
        updated_at=advance.updated_at,
    )
