"""
Pydantic response models -- what the gateway returns.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ActionInvocationResponse(BaseModel):
    """ActionResponse body plus the session attribute map to persist."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    session_attributes: dict[str, str] = Field(default_factory=dict, alias="sessionAttributes")


class ActionListResponse(BaseModel):
    actions: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str = "0.1.0"
    uptime_seconds: float = 0.0
    scanner_configured: bool = False
    executor_configured: bool = False


class ReadinessResponse(BaseModel):
    """Readiness check response (deeper than health)."""

    ready: bool
    checks: dict[str, bool] = Field(default_factory=dict)
