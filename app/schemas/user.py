"""Schemas for user administration endpoints."""

from pydantic import BaseModel, Field, field_validator

from app.schemas.auth import PHONE_PATTERN, Role, UserOut
from app.schemas.common import Pagination

# Fields a user (or an admin on their behalf) may change through PUT /users/{id}.
PROFILE_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "phone",
    "department",
    "position",
)


class ProfileUpdate(BaseModel):
    """Whitelisted profile fields; anything else in the body is ignored."""

    model_config = {"extra": "ignore"}

    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    department: str | None = Field(default=None, min_length=2, max_length=50)
    position: str | None = Field(default=None, min_length=2, max_length=50)

    @field_validator(*PROFILE_FIELDS, mode="before")
    @classmethod
    def strip_text(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v


class RoleUpdate(BaseModel):
    role: Role


class StatusUpdate(BaseModel):
    is_active: bool = Field(..., strict=True)


class UsersListData(BaseModel):
    users: list[UserOut]
    pagination: Pagination


class RoleCount(BaseModel):
    role: Role
    count: int


class RolesSummaryData(BaseModel):
    summary: list[RoleCount]
