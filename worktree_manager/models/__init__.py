"""Data models for worktree-manager."""

from .worktree import Worktree, WorktreeStatus
from .safety import CommitSummary, OpenHandle, SafetyReport

__all__ = ["Worktree", "WorktreeStatus", "CommitSummary", "OpenHandle", "SafetyReport"]
