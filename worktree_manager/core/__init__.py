"""Core worktree lifecycle operations."""

from .cleanup import CleanupOrchestrator, CleanupResult, CleanupState
from .create import CreatedWorktree, WorktreeCreator, normalize_description

__all__ = [
    "CleanupOrchestrator",
    "CleanupResult",
    "CleanupState",
    "CreatedWorktree",
    "WorktreeCreator",
    "normalize_description",
]
