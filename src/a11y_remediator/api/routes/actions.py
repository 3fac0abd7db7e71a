"""
Action API -- one remediation step per request.

  GET  /api/v1/actions           -- List supported actions
  POST /api/v1/actions/{action}  -- Invoke an action for a session

The response always carries sessionAttributes; the caller persists them
and sends them back with the next action for the same session. Action
failures are reported in the body (success: false), not as HTTP errors.

Security:
  - Bearer API key (see middleware/auth.py)
  - Per-client rate limit
  - Request size and shape validated by pydantic before dispatch
"""

import logging

from fastapi import APIRouter, Depends, Request

from ...orchestration.action_handler import ActionHandler, ActionRequest
from ..middleware.auth import AuthContext, verify_api_key
from ..middleware.rate_limit import check_rate_limit
from ..models.requests import ActionInvocationRequest
from ..models.responses import ActionInvocationResponse, ActionListResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/actions", response_model=ActionListResponse)
async def list_actions(
    request: Request,
    auth: AuthContext = Depends(verify_api_key),
) -> ActionListResponse:
    handler: ActionHandler = request.app.state.action_handler
    return ActionListResponse(actions=handler.actions)


@router.post(
    "/actions/{action}",
    response_model=ActionInvocationResponse,
    response_model_by_alias=True,
)
async def invoke_action(
    action: str,
    body: ActionInvocationRequest,
    request: Request,
    auth: AuthContext = Depends(verify_api_key),
    _rate: None = Depends(check_rate_limit),
) -> ActionInvocationResponse:
    """Run one action against the session attribute map in the request."""
    handler: ActionHandler = request.app.state.action_handler
    response = await handler.handle(ActionRequest.from_dict(body.to_action_dict(action)))

    if not response.success:
        logger.info(
            f"[Actions] {action} for {body.session_id} (user {auth.user_id}) "
            f"failed: {(response.error or {}).get('code')}"
        )
    return ActionInvocationResponse(
        success=response.success,
        data=response.data if response.success else None,
        error=response.error,
        session_attributes=response.session_attributes,
    )
