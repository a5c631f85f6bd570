"""Request/response schemas for auth and user endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN

Role = Literal["staff", "manager", "finance", "admin"]

ROLE_VALUES: frozenset[str] = frozenset({"staff", "manager", "finance", "admin"})

# Optional leading +, no leading zero, at most 16 digits.
PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _normalize_employee_id(value: str) -> str:
    return value.strip().upper()


class RegisterRequest(BaseModel):
    """New employee account. role is only honored when an admin registers the user."""

    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    employee_id: str = Field(..., min_length=3, max_length=20)
    department: str = Field(..., min_length=2, max_length=50)
    position: str = Field(..., min_length=2, max_length=50)
    role: Role | None = None
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)

    @field_validator("first_name", "last_name", "department", "position", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("employee_id")
    @classmethod
    def upper_employee_id(cls, v: str) -> str:
        return _normalize_employee_id(v)


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return _normalize_email(v)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN
    )


class CurrentUser(BaseModel):
    """Authenticated user resolved from the bearer token, for dependency injection."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    employee_id: str
    first_name: str
    last_name: str
    department: str
    role: Role


class UserOut(BaseModel):
    """User as returned by the API (never includes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    employee_id: str
    first_name: str
    last_name: str
    department: str
    position: str
    role: Role
    phone: str | None = None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime | None = None


class UserRef(BaseModel):
    """Compact user reference embedded in advance payloads."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: str
    first_name: str
    last_name: str
    department: str


class AuthData(BaseModel):
    """Payload of register/login: the user plus a bearer token."""

    user: UserOut
    token: str
    token_type: str = Field(default="bearer", description="Token type")


class UserData(BaseModel):
    user: UserOut
