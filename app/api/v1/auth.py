"""Registration, JWT login and auth dependencies (get_current_user, require)."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.database import get_db, violated_unique_field
from app.core.errors import (
    AuthenticationError,
    DuplicateError,
    ValidationError,
    field_errors,
)
from app.core.security import (
    TokenExpired,
    TokenInvalid,
    create_access_token,
    decode_access_token,
    hash_password,
    subject_user_id,
    verify_password,
)
from app.models.user import User
from app.schemas.auth import (
    AuthData,
    ChangePasswordRequest,
    CurrentUser,
    LoginRequest,
    RegisterRequest,
    UserData,
    UserOut,
)
from app.schemas.common import ApiResponse
from app.services.policy import authorize

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

# One message for every login failure so callers cannot probe which emails exist.
INVALID_CREDENTIALS = "Invalid email or password."

DUPLICATE_MESSAGES = {
    "email": "User with this email already exists",
    "employee_id": "User with this employee ID already exists",
}


@lru_cache
def _dummy_hash() -> str:
    """A hash at the configured cost, checked against when the email is unknown."""
    return hash_password("unknown-account-placeholder")


def _resolve_user(token: str, db: Session) -> User:
    try:
        payload = decode_access_token(token)
        user_id = subject_user_id(payload)
    except (TokenExpired, TokenInvalid) as e:
        raise AuthenticationError(str(e)) from e
    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Invalid token.")
    if not user.is_active:
        raise AuthenticationError("Account has been deactivated.")
    return user


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """Dependency: require a valid Bearer JWT for a live, active user. Raises 401 otherwise."""
    if credentials is None:
        raise AuthenticationError("Access denied. No token provided.")
    return CurrentUser.model_validate(_resolve_user(credentials.credentials, db))


def optional_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser | None:
    """Dependency: the caller if a valid token was sent, else None (never raises 401)."""
    if credentials is None:
        return None
    try:
        return CurrentUser.model_validate(_resolve_user(credentials.credentials, db))
    except AuthenticationError:
        return None


def require(operation: str) -> Callable[..., CurrentUser]:
    """Dependency factory: authenticate, then check the role gate for operation."""

    def dependency(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        authorize(current_user, operation)
        return current_user

    return dependency


def _ensure_unique(db: Session, body: RegisterRequest) -> None:
    if db.query(User.id).filter(User.email == body.email).first() is not None:
        raise DuplicateError(DUPLICATE_MESSAGES["email"], field="email")
    if db.query(User.id).filter(User.employee_id == body.employee_id).first() is not None:
        raise DuplicateError(DUPLICATE_MESSAGES["employee_id"], field="employee_id")


@router.post(
    "/register",
    response_model=ApiResponse[AuthData],
    status_code=status.HTTP_201_CREATED,
)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    caller: Annotated[CurrentUser | None, Depends(optional_current_user)],
) -> ApiResponse[AuthData]:
    """
    Create an employee account and return a token for it.

    New accounts are always staff unless an admin is the caller, in which case
    the requested role is used.
    """
    role = "staff"
    if body.role is not None and caller is not None and caller.role == "admin":
        role = body.role

    _ensure_unique(db, body)
    user = User(
        email=body.email,
        employee_id=body.employee_id,
        first_name=body.first_name,
        last_name=body.last_name,
        department=body.department,
        position=body.position,
        role=role,
        phone=body.phone,
        is_active=True,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        field = violated_unique_field(e, ("email", "employee_id"))
        if field is None:
            raise
        raise DuplicateError(DUPLICATE_MESSAGES[field], field=field) from e
    db.refresh(user)

    logger.info("User registered", extra={"user_id": user.id, "role": user.role})
    return ApiResponse(
        message="User registered successfully",
        data=AuthData(
            user=UserOut.model_validate(user),
            token=create_access_token(sub=user.id, role=user.role),
        ),
    )


@router.post("/login", response_model=ApiResponse[AuthData])
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[AuthData]:
    """
    Authenticate with email and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <token>
    """
    user = db.query(User).filter(User.email == body.email).first()
    if user is None:
        # Unknown emails still pay for one bcrypt check.
        verify_password(body.password, _dummy_hash())
        logger.warning("Failed login attempt")
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not verify_password(body.password, user.password_hash):
        logger.warning("Failed login attempt")
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not user.is_active:
        logger.warning("Login refused for deactivated account", extra={"user_id": user.id})
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.last_login = datetime.now(UTC)
    db.commit()
    db.refresh(user)
    return ApiResponse(
        message="Login successful",
        data=AuthData(
            user=UserOut.model_validate(user),
            token=create_access_token(sub=user.id, role=user.role),
        ),
    )


@router.get("/me", response_model=ApiResponse[UserData])
def me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[UserData]:
    user = db.get(User, current_user.id)
    return ApiResponse(data=UserData(user=UserOut.model_validate(user)))


@router.post("/change-password", response_model=ApiResponse[None])
def change_password(
    body: ChangePasswordRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[None]:
    user = db.get(User, current_user.id)
    if not verify_password(body.current_password, user.password_hash):
        raise ValidationError(
            "Validation error",
            field_errors([("current_password", "Current password is incorrect")]),
        )
    user.password_hash = hash_password(body.new_password)
    db.commit()
    logger.info("Password changed", extra={"user_id": user.id})
    return ApiResponse(message="Password changed successfully")


@router.post("/logout", response_model=ApiResponse[None])
def logout(
    _user: Annotated[CurrentUser, Depends(get_current_user)],
) -> ApiResponse[None]:
    """Tokens are stateless; the client discards its copy."""
    return ApiResponse(message="Logged out successfully")


@router.get("/verify-token", response_model=ApiResponse[UserData])
def verify_token(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[UserData]:
    user = db.get(User, current_user.id)
    return ApiResponse(
        message="Token is valid", data=UserData(user=UserOut.model_validate(user))
    )
