"""Unit tests for the declarative authorization table."""

import unittest
from types import SimpleNamespace

from app.core.errors import AuthorizationError
from app.schemas.auth import CurrentUser
from app.services.policy import POLICY, authorize, in_visibility_scope


def user(uid: int, role: str, department: str = "Sales") -> CurrentUser:
    return CurrentUser(
        id=uid,
        email=f"u{uid}@example.com",
        employee_id=f"EMP{uid:03d}",
        first_name="Test",
        last_name="User",
        department=department,
        role=role,
    )


class TestRoleGate(unittest.TestCase):
    def test_allowed_roles_pass(self) -> None:
        authorize(user(1, "finance"), "advance:disburse")
        authorize(user(1, "admin"), "advance:disburse")
        authorize(user(1, "manager"), "manager:view")

    def test_disallowed_role_is_forbidden_with_details(self) -> None:
        with self.assertRaises(AuthorizationError) as ctx:
            authorize(user(1, "staff"), "report:view")
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.details["current"], "staff")
        self.assertEqual(ctx.exception.details["required"], ["admin", "finance", "manager"])

    def test_admin_is_not_an_approver(self) -> None:
        with self.assertRaises(AuthorizationError):
            authorize(user(1, "admin"), "advance:approve")

    def test_unknown_operation_raises_key_error(self) -> None:
        with self.assertRaises(KeyError):
            authorize(user(1, "admin"), "advance:teleport")

    def test_every_rule_names_known_roles(self) -> None:
        known = {"staff", "manager", "finance", "admin"}
        for name, rule in POLICY.items():
            self.assertTrue(rule.roles, name)
            self.assertLessEqual(set(rule.roles), known, name)


class TestOwnershipScope(unittest.TestCase):
    def test_owner_or_elevated(self) -> None:
        authorize(user(1, "staff"), "advance:read", owner_id=1)
        authorize(user(2, "manager"), "advance:read", owner_id=1)
        with self.assertRaises(AuthorizationError):
            authorize(user(3, "staff"), "advance:read", owner_id=1)

    def test_owner_only(self) -> None:
        authorize(user(1, "staff"), "advance:retire", owner_id=1)
        with self.assertRaises(AuthorizationError):
            authorize(user(2, "admin"), "advance:retire", owner_id=1)

    def test_self_or_admin(self) -> None:
        authorize(user(1, "staff"), "user:update", owner_id=1)
        authorize(user(2, "admin"), "user:update", owner_id=1)
        with self.assertRaises(AuthorizationError):
            authorize(user(3, "manager"), "user:update", owner_id=1)


class TestVisibilityScope(unittest.TestCase):
    def test_staff_sees_only_self(self) -> None:
        me = user(1, "staff")
        self.assertTrue(in_visibility_scope(me, SimpleNamespace(id=1, role="staff", department="Sales")))
        self.assertFalse(in_visibility_scope(me, SimpleNamespace(id=2, role="staff", department="Sales")))

    def test_manager_sees_staff_of_own_department(self) -> None:
        manager = user(1, "manager", department="Sales")
        self.assertTrue(in_visibility_scope(manager, SimpleNamespace(id=2, role="staff", department="Sales")))
        self.assertFalse(in_visibility_scope(manager, SimpleNamespace(id=3, role="staff", department="IT")))
        self.assertFalse(in_visibility_scope(manager, SimpleNamespace(id=4, role="manager", department="Sales")))

    def test_finance_and_admin_see_everyone(self) -> None:
        other = SimpleNamespace(id=9, role="staff", department="IT")
        self.assertTrue(in_visibility_scope(user(1, "finance"), other))
        self.assertTrue(in_visibility_scope(user(2, "admin"), other))
