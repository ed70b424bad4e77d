"""Worktree data models."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from worktree_manager.constants import DETACHED_BRANCH


@dataclass
class Worktree:
    """A registered git worktree, as reported by `git worktree list`."""

    path: str
    branch: str  # Branch name, or "detached"
    head: str
    is_main: bool = False  # Is this the main working tree?
    is_bare: bool = False
    locked: bool = False
    lock_reason: Optional[str] = None  # Only meaningful when locked
    prunable: bool = False
    exists: bool = True  # Directory still present on disk?

    @property
    def name(self) -> str:
        """Last path component, the default registration name."""
        return os.path.basename(os.path.normpath(self.path))

    @property
    def is_detached(self) -> bool:
        return self.branch == DETACHED_BRANCH

    @property
    def lock_state(self) -> str:
        return "locked" if self.locked else "unlocked"

    @property
    def is_valid(self) -> bool:
        """Registered and still present on disk."""
        return self.exists and not self.prunable

    def __str__(self) -> str:
        """String representation of worktree."""
        status = "active" if self.exists else "orphaned"
        main_marker = " (main)" if self.is_main else ""
        lock_marker = " [locked]" if self.locked else ""
        return f"{self.branch} @ {self.path}{main_marker} [{status}]{lock_marker}"


@dataclass
class WorktreeStatus:
    """Read-only health snapshot of a single worktree."""

    path: str
    exists: bool = False
    is_valid_worktree: bool = False
    branch: str = ""
    head: str = ""
    base_branch: Optional[str] = None
    changed_files: List[str] = field(default_factory=list)
    unmerged_count: int = 0
    upstream: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    last_commit: str = ""
    last_commit_date: str = ""
    last_commit_author: str = ""
    dependency_type: str = "none"
    dependencies_installed: str = "unknown"

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_files)

    @property
    def change_count(self) -> int:
        return len(self.changed_files)

    @property
    def ready_for_cleanup(self) -> bool:
        return self.is_valid_worktree and not self.has_changes and self.unmerged_count == 0

    @property
    def warning_count(self) -> int:
        warnings = 0
        if self.has_changes:
            warnings += 1
        if self.behind > 0:
            warnings += 1
        if self.dependencies_installed == "false":
            warnings += 1
        return warnings

    def to_dict(self) -> dict:
        """Convert to the JSON shape used by --json output."""
        return {
            "path": self.path,
            "exists": self.exists,
            "is_valid_worktree": self.is_valid_worktree,
            "branch": self.branch,
            "head": self.head,
            "base_branch": self.base_branch,
            "has_changes": self.has_changes,
            "change_count": self.change_count,
            "unmerged_commits": self.unmerged_count,
            "upstream": self.upstream,
            "ahead": self.ahead,
            "behind": self.behind,
            "last_commit": self.last_commit,
            "last_commit_date": self.last_commit_date,
            "last_commit_author": self.last_commit_author,
            "dependencies": {
                "type": self.dependency_type,
                "installed": self.dependencies_installed,
            },
        }
