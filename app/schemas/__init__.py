"""Pydantic request/response schemas."""

from app.schemas.advance import (
    AdvanceCreate,
    AdvanceDetail,
    AdvanceOut,
    ApproveRequest,
    DisburseRequest,
    RetireRequest,
    StatusStats,
)
from app.schemas.auth import CurrentUser, LoginRequest, RegisterRequest, UserOut
from app.schemas.common import ApiResponse, Pagination
from app.schemas.health import HealthResponse

__all__ = [
    "AdvanceCreate",
    "AdvanceDetail",
    "AdvanceOut",
    "ApiResponse",
    "ApproveRequest",
    "CurrentUser",
    "DisburseRequest",
    "HealthResponse",
    "LoginRequest",
    "Pagination",
    "RegisterRequest",
    "RetireRequest",
    "StatusStats",
    "UserOut",
]
