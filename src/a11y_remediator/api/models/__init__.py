"""Pydantic models for API request/response contracts."""
from .requests import ActionInvocationRequest, ActionParameterModel
from .responses import (
    ActionInvocationResponse,
    ActionListResponse,
    HealthResponse,
    ReadinessResponse,
)
