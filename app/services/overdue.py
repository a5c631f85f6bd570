"""Overdue-returns check: disbursed advances whose expected return date has passed."""

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.models import Advance
from app.schemas.advance import as_utc
from app.services.reports import overdue_advances

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def run_overdue_check(
    session: Session, settings: "Settings", now: datetime | None = None
) -> list[Advance]:
    """
    Log every disbursed advance more than OVERDUE_GRACE_DAYS past its expected
    return date and return them. Read-only: safe to run repeatedly.
    """
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(days=settings.OVERDUE_GRACE_DAYS)
    overdue = overdue_advances(session, cutoff)

    total = 0.0
    for advance in overdue:
        amount = advance.disbursed_amount or advance.amount
        total += amount
        logger.warning(
            "Advance overdue for return",
            extra={
                "advance_id": advance.id,
                "request_number": advance.request_number,
                "requester_id": advance.requester_id,
                "days_overdue": (now - as_utc(advance.expected_return_date)).days,
                "amount": amount,
            },
        )
    logger.info(
        "Overdue check: cutoff=%s, overdue=%s, total_amount=%.2f",
        cutoff.isoformat(),
        len(overdue),
        total,
    )
    return overdue
