"""Pydantic schemas for health check responses."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Payload of the health check endpoint."""

    status: Literal["ok", "degraded"] = Field(
        default="ok", description="degraded when the database is unreachable"
    )
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    database: Literal["connected", "disconnected"]
    timestamp: datetime
