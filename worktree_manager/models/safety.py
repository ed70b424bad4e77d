"""Safety inspection result models."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class CommitSummary:
    """A commit as shown to the caller: short hash and subject line."""

    sha: str
    subject: str

    def __str__(self) -> str:
        return f"{self.sha} {self.subject}"


@dataclass(frozen=True)
class OpenHandle:
    """A process holding a file open under a worktree."""

    process_name: str
    pid: int

    def __str__(self) -> str:
        return f"{self.process_name} (PID: {self.pid})"


@dataclass
class SafetyReport:
    """Result of inspecting a worktree before removal.

    Built fresh on every inspection and never persisted. ``lock_reason`` is
    None unless the worktree is locked; an empty string is a lock with no
    stated reason and still blocks removal.
    """

    worktree_path: str
    lock_file: Optional[str] = None
    lock_reason: Optional[str] = None
    uncommitted_files: List[str] = field(default_factory=list)
    base_branch: Optional[str] = None
    unmerged_commits: List[CommitSummary] = field(default_factory=list)
    open_handles: List[OpenHandle] = field(default_factory=list)
    directory_missing: bool = False

    @property
    def is_locked(self) -> bool:
        return self.lock_reason is not None

    @property
    def has_uncommitted_changes(self) -> bool:
        return bool(self.uncommitted_files)

    @property
    def unmerged_commit_count(self) -> int:
        return len(self.unmerged_commits)

    @property
    def is_blocking(self) -> bool:
        """True when any hard gate would stop removal without an override."""
        return self.is_locked or self.has_uncommitted_changes or self.unmerged_commit_count > 0
