"""Pre-removal safety checks for worktrees."""

import os
from typing import List, Optional, Tuple

from worktree_manager.logging_config import get_logger
from worktree_manager.models.safety import CommitSummary, OpenHandle, SafetyReport
from worktree_manager.models.worktree import Worktree
from worktree_manager.services.git.branches import BranchService
from worktree_manager.services.git.worktrees import WorktreeService
from worktree_manager.services.handles import OpenHandleDetector

logger = get_logger(__name__)


class SafetyInspector:
    """Decides whether a worktree is safe to remove.

    Lock, uncommitted-changes and unmerged-commit checks are hard gates;
    open file handles are only ever a warning. Every check re-reads current
    state, so inspecting an unchanged worktree twice gives equal reports.
    """

    def __init__(
        self,
        worktree_service: WorktreeService,
        branch_service: Optional[BranchService] = None,
        handle_detector: Optional[OpenHandleDetector] = None,
    ):
        self.worktree_service = worktree_service
        self.branch_service = branch_service or BranchService(worktree_service.repo_path)
        self.handle_detector = handle_detector or OpenHandleDetector()

    def check_lock(self, worktree: Worktree) -> Tuple[str, Optional[str]]:
        """Read the worktree's lock marker.

        Returns:
            Tuple of (lock_file, reason). reason is None when unlocked and may
            be an empty string for a lock with no stated reason.
        """
        lock_file = self.worktree_service.lock_file(worktree)
        if not os.path.isfile(lock_file):
            return lock_file, None
        try:
            with open(lock_file, encoding="utf-8", errors="replace") as f:
                reason = f.read().replace("\n", " ").strip()
        except OSError as e:
            # The marker exists; an unreadable reason does not unlock it
            logger.warning(f"Could not read lock file {lock_file}: {e}")
            reason = ""
        logger.debug(f"Worktree {worktree.path} is locked: {reason!r}")
        return lock_file, reason

    def find_uncommitted_changes(self, worktree: Worktree) -> List[str]:
        """Files that differ from the last commit (nothing to check if the directory is gone)."""
        if not os.path.isdir(worktree.path):
            return []
        return self.worktree_service.changed_files(worktree.path)

    def resolve_base_branch(self, base_branch: Optional[str] = None) -> Optional[str]:
        """Use the given base branch or fall back to develop/main/master."""
        return base_branch or self.branch_service.detect_base_branch()

    def find_unmerged_commits(self, worktree: Worktree, base_branch: Optional[str]) -> List[CommitSummary]:
        """Commits on the worktree's branch (or detached HEAD) missing from base_branch."""
        if not base_branch:
            logger.warning("No base branch found (tried develop, main, master); skipping unmerged check")
            return []
        tip = worktree.head if worktree.is_detached else worktree.branch
        if not tip or tip == base_branch:
            return []
        return self.branch_service.unmerged_commits(tip, base_branch)

    def find_open_handles(self, worktree: Worktree) -> List[OpenHandle]:
        """Processes with open files under the worktree (best effort, never raises)."""
        if not os.path.isdir(worktree.path):
            return []
        return self.handle_detector.find_open_handles(worktree.path, cwd=self.worktree_service.project_root)

    def inspect(
        self,
        worktree: Worktree,
        base_branch: Optional[str] = None,
        check_lock: bool = True,
        check_handles: bool = True,
    ) -> SafetyReport:
        """Run every check and return a fresh SafetyReport.

        Args:
            worktree: Worktree to inspect
            base_branch: Integration branch (auto-detected if None)
            check_lock: Read the lock marker
            check_handles: Scan for open file handles
        """
        report = SafetyReport(
            worktree_path=worktree.path,
            directory_missing=not os.path.isdir(worktree.path),
        )
        if check_lock:
            report.lock_file, report.lock_reason = self.check_lock(worktree)
        report.uncommitted_files = self.find_uncommitted_changes(worktree)
        report.base_branch = self.resolve_base_branch(base_branch)
        report.unmerged_commits = self.find_unmerged_commits(worktree, report.base_branch)
        if check_handles:
            report.open_handles = self.find_open_handles(worktree)
        return report
