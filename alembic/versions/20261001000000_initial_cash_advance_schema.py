"""Initial schema: users, advances and advance approval history.

Revision ID: 20261001000000
Revises:
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "20261001000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(precision=12, scale=2)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("employee_id", sa.String(length=20), nullable=False),
        sa.Column("first_name", sa.String(length=50), nullable=False),
        sa.Column("last_name", sa.String(length=50), nullable=False),
        sa.Column("department", sa.String(length=50), nullable=False),
        sa.Column("position", sa.String(length=50), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="staff"),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_employee_id"), "users", ["employee_id"], unique=True)
    op.create_index(op.f("ix_users_department"), "users", ["department"], unique=False)
    op.create_index(op.f("ix_users_role"), "users", ["role"], unique=False)

    op.create_table(
        "advances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("request_number", sa.String(length=16), nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("purpose", sa.String(length=500), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column(
            "request_date",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("expected_return_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("disbursed_by_id", sa.Integer(), nullable=True),
        sa.Column("disbursed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("disbursed_amount", MONEY, nullable=True),
        sa.Column("disbursement_method", sa.String(length=32), nullable=True),
        sa.Column("disbursement_reference", sa.String(length=255), nullable=True),
        sa.Column("retired_by_id", sa.Integer(), nullable=True),
        sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("receipts", postgresql.JSONB(), nullable=True),
        sa.Column("total_spent", MONEY, nullable=True),
        sa.Column("balance_returned", MONEY, nullable=True),
        sa.Column("expense_breakdown", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["disbursed_by_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["retired_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_advances_request_number"), "advances", ["request_number"], unique=True
    )
    op.create_index(op.f("ix_advances_requester_id"), "advances", ["requester_id"], unique=False)
    op.create_index(op.f("ix_advances_status"), "advances", ["status"], unique=False)
    op.create_index(op.f("ix_advances_request_date"), "advances", ["request_date"], unique=False)
    op.create_index(op.f("ix_advances_created_at"), "advances", ["created_at"], unique=False)

    op.create_table(
        "advance_approvals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("advance_id", sa.Integer(), nullable=False),
        sa.Column("approver_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("decision", sa.String(length=16), nullable=False),
        sa.Column("comment", sa.String(length=500), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["advance_id"], ["advances.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["approver_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_advance_approvals_advance_id"),
        "advance_approvals",
        ["advance_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_advance_approvals_advance_id"), table_name="advance_approvals")
    op.drop_table("advance_approvals")
    for name in ("created_at", "request_date", "status", "requester_id", "request_number"):
        op.drop_index(op.f(f"ix_advances_{name}"), table_name="advances")
    op.drop_table("advances")
    for name in ("role", "department", "employee_id", "email"):
        op.drop_index(op.f(f"ix_users_{name}"), table_name="users")
    op.drop_table("users")
