"""Domain error taxonomy; each error maps to one HTTP status in the response envelope."""

from typing import Any


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(AppError):
    """Malformed or out-of-range input; details holds per-field messages."""

    status_code = 400


class AuthenticationError(AppError):
    """Missing, expired or invalid credentials."""

    status_code = 401


class AuthorizationError(AppError):
    """Role or ownership mismatch for the requested operation."""

    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class StateConflictError(AppError):
    """
    A lifecycle transition was attempted from an invalid or stale status.

    current_status is the status actually stored, so the caller can reconcile.
    """

    status_code = 409

    def __init__(self, message: str, current_status: str | None = None) -> None:
        self.current_status = current_status
        details = {"current_status": current_status} if current_status else None
        super().__init__(message, details)


class DuplicateError(AppError):
    """Unique-constraint violation; field names the offending attribute."""

    status_code = 409

    def __init__(self, message: str, field: str) -> None:
        self.field = field
        super().__init__(message, {"field": field})


def field_errors(pairs: list[tuple[str, str]]) -> list[dict[str, str]]:
    """Build the [{field, message}] details list used by validation failures."""
    return [{"field": field, "message": message} for field, message in pairs]
