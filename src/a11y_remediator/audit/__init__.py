"""Audit trail and rollback -- what was changed, and how to undo it."""
from .audit_logger import AuditLogger
from .rollback import PageHandle, RollbackManager
