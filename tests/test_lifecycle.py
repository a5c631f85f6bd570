"""Unit tests for the pure advance state machine (no database)."""

import unittest
from datetime import UTC, datetime

from app.core.errors import AuthorizationError, StateConflictError, ValidationError
from app.schemas.advance import (
    ApprovalEvent,
    ApproveRequest,
    Disbursed,
    DisburseRequest,
    Disbursement,
    FinanceApproved,
    ManagerApproved,
    Pending,
    Rejected,
    Retired,
    RetireRequest,
)
from app.schemas.auth import CurrentUser
from app.services.lifecycle import can_be_approved_by, transition

AT = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


def user(uid: int, role: str) -> CurrentUser:
    return CurrentUser(
        id=uid,
        email=f"u{uid}@example.com",
        employee_id=f"EMP{uid:03d}",
        first_name="Test",
        last_name="User",
        department="Sales",
        role=role,
    )


STAFF = user(1, "staff")
MANAGER = user(2, "manager")
FINANCE = user(3, "finance")
ADMIN = user(4, "admin")


def pending(amount: float = 500.0) -> Pending:
    return Pending(requester_id=STAFF.id, amount=amount)


def finance_approved() -> FinanceApproved:
    state = transition(pending(), ApproveRequest(), MANAGER, AT)
    return transition(state, ApproveRequest(), FINANCE, AT)


def disbursed() -> Disbursed:
    return transition(finance_approved(), DisburseRequest(method="bank_transfer"), FINANCE, AT)


class TestApprovalStages(unittest.TestCase):
    def test_manager_moves_pending_to_manager_approved(self) -> None:
        state = transition(pending(), ApproveRequest(), MANAGER, AT)
        self.assertIsInstance(state, ManagerApproved)
        self.assertEqual(len(state.history), 1)
        self.assertEqual(state.history[0].role, "manager")

    def test_finance_moves_manager_approved_to_finance_approved(self) -> None:
        state = finance_approved()
        self.assertIsInstance(state, FinanceApproved)
        self.assertEqual(state.approval.approver_id, FINANCE.id)
        self.assertEqual([e.role for e in state.history], ["manager", "finance"])

    def test_manager_cannot_act_on_manager_approved(self) -> None:
        state = transition(pending(), ApproveRequest(), MANAGER, AT)
        with self.assertRaises(StateConflictError) as ctx:
            transition(state, ApproveRequest(), user(5, "manager"), AT)
        self.assertEqual(ctx.exception.current_status, "manager_approved")

    def test_finance_cannot_act_on_pending(self) -> None:
        with self.assertRaises(StateConflictError) as ctx:
            transition(pending(), ApproveRequest(), FINANCE, AT)
        self.assertEqual(ctx.exception.current_status, "pending")

    def test_staff_and_admin_cannot_approve(self) -> None:
        for actor in (user(9, "staff"), ADMIN):
            with self.assertRaises(AuthorizationError):
                transition(pending(), ApproveRequest(), actor, AT)

    def test_requester_cannot_approve_own_request(self) -> None:
        own = Pending(requester_id=MANAGER.id, amount=100.0)
        with self.assertRaises(AuthorizationError):
            transition(own, ApproveRequest(), MANAGER, AT)

    def test_can_be_approved_by(self) -> None:
        self.assertTrue(can_be_approved_by(pending(), "manager"))
        self.assertFalse(can_be_approved_by(pending(), "finance"))
        self.assertFalse(can_be_approved_by(pending(), "admin"))


class TestRejection(unittest.TestCase):
    def test_manager_rejects_pending(self) -> None:
        action = ApproveRequest(decision="rejected", comment="Budget exhausted")
        state = transition(pending(), action, MANAGER, AT)
        self.assertIsInstance(state, Rejected)
        self.assertEqual(state.rejection.comment, "Budget exhausted")
        self.assertEqual(state.history[-1], state.rejection)

    def test_finance_rejects_manager_approved(self) -> None:
        state = transition(pending(), ApproveRequest(), MANAGER, AT)
        state = transition(
            state, ApproveRequest(decision="rejected", comment="No receipts policy"), FINANCE, AT
        )
        self.assertIsInstance(state, Rejected)
        self.assertEqual(state.rejection.role, "finance")

    def test_rejection_requires_comment(self) -> None:
        with self.assertRaises(ValueError):
            ApproveRequest(decision="rejected", comment="   ")

    def test_rejected_is_absorbing(self) -> None:
        state = transition(
            pending(), ApproveRequest(decision="rejected", comment="No"), MANAGER, AT
        )
        attempts = [
            (ApproveRequest(), MANAGER),
            (ApproveRequest(), FINANCE),
            (DisburseRequest(method="cash"), FINANCE),
            (RetireRequest(total_expenses=1), STAFF),
        ]
        for action, actor in attempts:
            with self.assertRaises(StateConflictError) as ctx:
                transition(state, action, actor, AT)
            self.assertEqual(ctx.exception.current_status, "rejected")


class TestDisbursement(unittest.TestCase):
    def test_disburse_defaults_to_approved_amount(self) -> None:
        state = disbursed()
        self.assertIsInstance(state, Disbursed)
        self.assertEqual(state.disbursement.amount, 500.0)
        self.assertEqual(state.disbursement.method, "bank_transfer")

    def test_admin_may_disburse(self) -> None:
        state = transition(finance_approved(), DisburseRequest(method="cash"), ADMIN, AT)
        self.assertEqual(state.disbursement.disbursed_by_id, ADMIN.id)

    def test_manager_may_not_disburse(self) -> None:
        with self.assertRaises(AuthorizationError):
            transition(finance_approved(), DisburseRequest(method="cash"), MANAGER, AT)

    def test_disburse_requires_finance_approved(self) -> None:
        state = transition(pending(), ApproveRequest(), MANAGER, AT)
        with self.assertRaises(StateConflictError) as ctx:
            transition(state, DisburseRequest(method="cash"), FINANCE, AT)
        self.assertEqual(ctx.exception.current_status, "manager_approved")

    def test_disburse_more_than_approved_fails(self) -> None:
        with self.assertRaises(ValidationError):
            transition(finance_approved(), DisburseRequest(method="cash", amount=501), FINANCE, AT)

    def test_partial_disbursement(self) -> None:
        state = transition(
            finance_approved(), DisburseRequest(method="check", amount=300), FINANCE, AT
        )
        self.assertEqual(state.disbursement.amount, 300.0)


class TestRetirement(unittest.TestCase):
    def test_retire_records_balance(self) -> None:
        state = transition(disbursed(), RetireRequest(total_expenses=480), STAFF, AT)
        self.assertIsInstance(state, Retired)
        self.assertEqual(state.retirement.total_spent, 480.0)
        self.assertEqual(state.retirement.balance_returned, 20.0)

    def test_overspend_gives_negative_balance(self) -> None:
        action = RetireRequest(
            receipts=[
                {"description": "Hotel", "amount": 400},
                {"description": "Taxi", "amount": 150.5},
            ]
        )
        state = transition(disbursed(), action, STAFF, AT)
        self.assertEqual(state.retirement.total_spent, 550.5)
        self.assertEqual(state.retirement.balance_returned, -50.5)

    def test_only_requester_retires(self) -> None:
        with self.assertRaises(AuthorizationError):
            transition(disbursed(), RetireRequest(total_expenses=10), FINANCE, AT)

    def test_retire_requires_disbursed(self) -> None:
        with self.assertRaises(StateConflictError) as ctx:
            transition(finance_approved(), RetireRequest(total_expenses=10), STAFF, AT)
        self.assertEqual(ctx.exception.current_status, "finance_approved")

    def test_retired_is_absorbing(self) -> None:
        state = transition(disbursed(), RetireRequest(total_expenses=480), STAFF, AT)
        with self.assertRaises(StateConflictError) as ctx:
            transition(state, RetireRequest(total_expenses=480), STAFF, AT)
        self.assertEqual(ctx.exception.current_status, "retired")

    def test_receipts_and_total_must_agree(self) -> None:
        with self.assertRaises(ValueError):
            RetireRequest(receipts=[{"description": "Hotel", "amount": 100}], total_expenses=90)

    def test_retire_needs_some_total(self) -> None:
        with self.assertRaises(ValueError):
            RetireRequest()


class TestTaggedVariants(unittest.TestCase):
    def test_retired_state_carries_all_sub_records(self) -> None:
        state = transition(disbursed(), RetireRequest(total_expenses=500), STAFF, AT)
        self.assertIsInstance(state.approval, ApprovalEvent)
        self.assertIsInstance(state.disbursement, Disbursement)
        self.assertEqual(state.retirement.balance_returned, 0.0)

    def test_states_are_immutable(self) -> None:
        state = pending()
        with self.assertRaises(Exception):
            state.amount = 1.0
