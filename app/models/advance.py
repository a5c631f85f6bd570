"""ORM models for cash-advance requests and their approval history."""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.models.base import Base

# Money columns come back as floats; rounding to cents happens in the services.
Money = Numeric(12, 2, asdecimal=False)


class Advance(Base):
    """
    One cash-advance request from submission to its terminal state.

    status is always consistent with the approval rows and the disbursement /
    retirement columns; app.services.lifecycle is the only place that decides
    how they change together.
    """

    __tablename__ = "advances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_number = Column(String(16), nullable=False, unique=True, index=True)
    requester_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Money, nullable=False)
    purpose = Column(String(500), nullable=False)
    description = Column(String(1000), nullable=True)
    request_date = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    expected_return_date = Column(DateTime(timezone=True), nullable=False)
    priority = Column(String(16), nullable=False, default="medium")
    status = Column(String(32), nullable=False, default="pending", index=True)

    disbursed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_amount = Column(Money, nullable=True)
    disbursement_method = Column(String(32), nullable=True)
    disbursement_reference = Column(String(255), nullable=True)

    retired_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    retired_at = Column(DateTime(timezone=True), nullable=True)
    receipts = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    total_spent = Column(Money, nullable=True)
    balance_returned = Column(Money, nullable=True)
    expense_breakdown = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    requester = relationship(
        "User", back_populates="advances", foreign_keys=[requester_id]
    )
    approvals = relationship(
        "AdvanceApproval",
        back_populates="advance",
        order_by="AdvanceApproval.id",
        cascade="all, delete-orphan",
    )


class AdvanceApproval(Base):
    """Immutable approval-history event; rows are only ever inserted."""

    __tablename__ = "advance_approvals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    advance_id = Column(
        Integer,
        ForeignKey("advances.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role = Column(String(32), nullable=False)
    decision = Column(String(16), nullable=False)
    comment = Column(String(500), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=False)

    advance = relationship("Advance", back_populates="approvals")
    approver = relationship("User", foreign_keys=[approver_id])
