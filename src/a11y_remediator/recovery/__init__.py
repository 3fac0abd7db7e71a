"""Recovery paths for selector errors and failed verifications."""

from .error_recovery import (
    ErrorRecoveryService,
    PageStructure,
    RecoveryAction,
    RecoveryResult,
    levenshtein_distance,
    string_similarity,
)

__all__ = [
    "ErrorRecoveryService",
    "PageStructure",
    "RecoveryAction",
    "RecoveryResult",
    "levenshtein_distance",
    "string_similarity",
]
