"""
Pydantic request models -- the HTTP contract for action invocations.

    POST /api/v1/actions/{action}
    {
      "sessionId": "session-123",
      "parameters": [{"name": "url", "type": "string", "value": "https://..."}],
      "sessionAttributes": {"pending_violations": "[\"v1\"]", ...}
    }

parameters may also be a plain {name: value} object.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ActionParameterModel(BaseModel):
    """One named action parameter. Non-string values are JSON-encoded."""

    name: str = Field(..., min_length=1, max_length=100)
    type: str = "string"
    value: Any = None


class ActionInvocationRequest(BaseModel):
    """Body of POST /api/v1/actions/{action}."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=200)
    parameters: list[ActionParameterModel] | dict[str, Any] = Field(default_factory=list)
    session_attributes: dict[str, str] = Field(default_factory=dict, alias="sessionAttributes")

    def to_action_dict(self, action: str) -> dict[str, Any]:
        parameters = self.parameters
        if isinstance(parameters, list):
            parameters = [p.model_dump() for p in parameters]
        return {
            "action": action,
            "sessionId": self.session_id,
            "parameters": parameters,
            "sessionAttributes": dict(self.session_attributes),
        }
