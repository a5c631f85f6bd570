"""
Role-based access policy: one declarative table consulted by one function.

Each operation names the roles allowed to attempt it and the ownership scope
applied once the target record is known. Role checks run before any store
access; scope checks run after the target is loaded (owner_id is passed).
"""

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict

from app.core.errors import AuthorizationError
from app.schemas.auth import ROLE_VALUES

if TYPE_CHECKING:
    from app.models.user import User
    from app.schemas.auth import CurrentUser

Scope = Literal["any", "owner", "owner_or_elevated", "self_or_admin"]

ALL_ROLES: frozenset[str] = ROLE_VALUES
ELEVATED_ROLES: frozenset[str] = frozenset({"manager", "finance", "admin"})
# Roles whose visibility scope covers every record.
UNSCOPED_ROLES: frozenset[str] = frozenset({"finance", "admin"})


class PolicyRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    roles: frozenset[str]
    scope: Scope = "any"


POLICY: dict[str, PolicyRule] = {
    "advance:create": PolicyRule(roles=ALL_ROLES),
    "advance:list": PolicyRule(roles=ALL_ROLES),
    "advance:read": PolicyRule(roles=ALL_ROLES, scope="owner_or_elevated"),
    "advance:approve": PolicyRule(roles=frozenset({"manager", "finance"})),
    "advance:disburse": PolicyRule(roles=frozenset({"finance", "admin"})),
    "advance:retire": PolicyRule(roles=ALL_ROLES, scope="owner"),
    "advance:stats": PolicyRule(roles=ALL_ROLES),
    "user:list": PolicyRule(roles=ELEVATED_ROLES),
    "user:read": PolicyRule(roles=ALL_ROLES, scope="owner_or_elevated"),
    "user:update": PolicyRule(roles=ALL_ROLES, scope="self_or_admin"),
    "user:set_role": PolicyRule(roles=frozenset({"admin"})),
    "user:set_status": PolicyRule(roles=frozenset({"admin"})),
    "user:delete": PolicyRule(roles=frozenset({"admin"})),
    "user:roles_summary": PolicyRule(roles=frozenset({"admin", "manager"})),
    "manager:view": PolicyRule(roles=frozenset({"manager"})),
    "report:view": PolicyRule(roles=ELEVATED_ROLES),
    "report:overdue": PolicyRule(roles=frozenset({"finance", "admin"})),
}


def authorize(
    user: "CurrentUser",
    operation: str,
    owner_id: int | None = None,
) -> None:
    """
    Raise AuthorizationError unless user may perform operation.

    Without owner_id only the role gate is checked; with it the rule's
    ownership scope is enforced as well. Unknown operations raise KeyError.
    """
    rule = POLICY[operation]
    if user.role not in rule.roles:
        raise AuthorizationError(
            "Access denied. Insufficient permissions.",
            {"required": sorted(rule.roles), "current": user.role},
        )
    if owner_id is None or rule.scope == "any":
        return
    is_owner = user.id == owner_id
    if rule.scope == "owner" and not is_owner:
        raise AuthorizationError("Access denied. Only the owner can do this.")
    if rule.scope == "owner_or_elevated" and not (
        is_owner or user.role in ELEVATED_ROLES
    ):
        raise AuthorizationError("Access denied.")
    if rule.scope == "self_or_admin" and not (is_owner or user.role == "admin"):
        raise AuthorizationError("Access denied.")


def in_visibility_scope(user: "CurrentUser", requester: "User") -> bool:
    """
    True if requester's records fall inside user's visibility scope.

    staff see only their own records; managers see staff of their own
    department; finance and admin see everything.
    """
    if user.role in UNSCOPED_ROLES:
        return True
    if user.role == "manager":
        return requester.role == "staff" and requester.department == user.department
    return requester.id == user.id
