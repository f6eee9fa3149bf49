"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    environment: Literal["dev", "prod"] = Field(description="APP_ENV of the running process")
    database: Literal["connected", "disconnected"] = Field(
        description="Whether SELECT 1 succeeded against DATABASE_URL",
    )
