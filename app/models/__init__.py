"""SQLAlchemy ORM models."""

from app.models.advance import Advance, AdvanceApproval
from app.models.base import Base
from app.models.user import User

__all__ = ["Advance", "AdvanceApproval", "Base", "User"]
