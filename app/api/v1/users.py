"""User administration: listing, profile edits, role and status changes, deletion."""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.api.v1.auth import require
from app.api.v1.params import PageParams, page_params
from app.core.database import get_db
from app.core.errors import AuthorizationError, NotFoundError, StateConflictError
from app.models import Advance, AdvanceApproval, User
from app.schemas.auth import CurrentUser, Role, UserData, UserOut
from app.schemas.common import ApiResponse
from app.schemas.user import (
    ProfileUpdate,
    RoleCount,
    RolesSummaryData,
    RoleUpdate,
    StatusUpdate,
    UsersListData,
)
from app.services.policy import authorize
from app.services.queries import UserFilters, list_users

logger = logging.getLogger(__name__)

router = APIRouter()

Db = Annotated[Session, Depends(get_db)]


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("", response_model=ApiResponse[UsersListData])
def list_all(
    _user: Annotated[CurrentUser, Depends(require("user:list"))],
    db: Db,
    page: Annotated[PageParams, Depends(page_params)],
    role: Annotated[Role | Literal["all"] | None, Query()] = None,
    department: Annotated[str | None, Query(max_length=50)] = None,
    is_active: Annotated[Literal["true", "false", "all"] | None, Query()] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
) -> ApiResponse[UsersListData]:
    filters = UserFilters(
        role=role,
        department=department,
        is_active=None if is_active in (None, "all") else is_active == "true",
        search=search,
    )
    users, pagination = list_users(db, filters, page.page, page.limit)
    return ApiResponse(
        data=UsersListData(
            users=[UserOut.model_validate(u) for u in users], pagination=pagination
        )
    )


@router.get("/roles/summary", response_model=ApiResponse[RolesSummaryData])
def roles_summary(
    _user: Annotated[CurrentUser, Depends(require("user:roles_summary"))],
    db: Db,
) -> ApiResponse[RolesSummaryData]:
    """Count of active users per role."""
    rows = db.execute(
        select(User.role, func.count(User.id))
        .where(User.is_active.is_(True))
        .group_by(User.role)
        .order_by(User.role)
    ).all()
    return ApiResponse(
        data=RolesSummaryData(
            summary=[RoleCount(role=role, count=count) for role, count in rows]
        )
    )


@router.get("/{user_id}", response_model=ApiResponse[UserData])
def get_one(
    user_id: int,
    current_user: Annotated[CurrentUser, Depends(require("user:read"))],
    db: Db,
) -> ApiResponse[UserData]:
    authorize(current_user, "user:read", owner_id=user_id)
    user = _get_user(db, user_id)
    return ApiResponse(data=UserData(user=UserOut.model_validate(user)))


@router.put("/{user_id}", response_model=ApiResponse[UserData])
def update_profile(
    user_id: int,
    body: ProfileUpdate,
    current_user: Annotated[CurrentUser, Depends(require("user:update"))],
    db: Db,
) -> ApiResponse[UserData]:
    """Update whitelisted profile fields; role, status and credentials are not editable here."""
    authorize(current_user, "user:update", owner_id=user_id)
    user = _get_user(db, user_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info(
        "User profile updated",
        extra={"user_id": user.id, "fields": sorted(changes), "by": current_user.id},
    )
    return ApiResponse(
        message="User updated successfully",
        data=UserData(user=UserOut.model_validate(user)),
    )


@router.put("/{user_id}/role", response_model=ApiResponse[UserData])
def set_role(
    user_id: int,
    body: RoleUpdate,
    current_user: Annotated[CurrentUser, Depends(require("user:set_role"))],
    db: Db,
) -> ApiResponse[UserData]:
    if user_id == current_user.id:
        raise AuthorizationError("You cannot change your own role.")
    user = _get_user(db, user_id)
    previous = user.role
    user.role = body.role
    db.commit()
    db.refresh(user)
    logger.info(
        "User role changed",
        extra={"user_id": user.id, "from_role": previous, "to_role": user.role},
    )
    return ApiResponse(
        message="User role updated successfully",
        data=UserData(user=UserOut.model_validate(user)),
    )


@router.put("/{user_id}/status", response_model=ApiResponse[UserData])
def set_status(
    user_id: int,
    body: StatusUpdate,
    current_user: Annotated[CurrentUser, Depends(require("user:set_status"))],
    db: Db,
) -> ApiResponse[UserData]:
    if user_id == current_user.id:
        raise AuthorizationError("You cannot change your own account status.")
    user = _get_user(db, user_id)
    user.is_active = body.is_active
    db.commit()
    db.refresh(user)
    logger.info(
        "User status changed",
        extra={"user_id": user.id, "is_active": user.is_active},
    )
    state = "activated" if user.is_active else "deactivated"
    return ApiResponse(
        message=f"User {state} successfully",
        data=UserData(user=UserOut.model_validate(user)),
    )


@router.delete("/{user_id}", response_model=ApiResponse[None])
def delete(
    user_id: int,
    current_user: Annotated[CurrentUser, Depends(require("user:delete"))],
    db: Db,
) -> ApiResponse[None]:
    """Permanently delete a user no advance refers to; deactivate otherwise."""
    if user_id == current_user.id:
        raise AuthorizationError("You cannot delete your own account.")
    user = _get_user(db, user_id)
    owned = db.scalar(
        select(func.count(Advance.id)).where(Advance.requester_id == user.id)
    )
    if owned:
        raise StateConflictError(
            "User has cash advance requests; deactivate the account instead."
        )
    handled = db.scalar(
        select(func.count(Advance.id)).where(
            or_(Advance.disbursed_by_id == user.id, Advance.retired_by_id == user.id)
        )
    ) or db.scalar(
        select(func.count(AdvanceApproval.id)).where(AdvanceApproval.approver_id == user.id)
    )
    if handled:
        raise StateConflictError(
            "User has processed cash advance requests; deactivate the account instead."
        )
    db.delete(user)
    db.commit()
    logger.info("User deleted", extra={"user_id": user_id, "by": current_user.id})
    return ApiResponse(message="User deleted successfully")
