"""Git-related services for worktree-manager."""

from .worktrees import WorktreeService
from .branches import BranchService
from .status import WorktreeStatusService

__all__ = [
    "WorktreeService",
    "BranchService",
    "WorktreeStatusService",
]
