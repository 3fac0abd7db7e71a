"""
Remediation orchestration.

  - WorkflowOrchestrator: the stateless fix-verify state machine
  - SpecialistRouter: picks the specialist that plans each fix
  - ActionHandler: per-step invocation contract for the agent runtime
  - ReportGenerator: final session report

Every step rehydrates from the session attribute map and hands it back.
"""
from .action_handler import ActionHandler, ActionRequest, ActionResponse, build_action_handler
from .report import ReportGenerator
from .specialist_router import SpecialistRouter
from .workflow import WorkflowAction, WorkflowOrchestrator, WorkflowState
