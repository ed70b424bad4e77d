"""Read-only worktree status enrichment."""

import git
import os
from typing import Optional

from worktree_manager.constants import DEPENDENCY_MARKERS
from worktree_manager.exceptions import GitOperationError, WorktreeNotFoundError
from worktree_manager.logging_config import get_logger
from worktree_manager.models.worktree import WorktreeStatus
from worktree_manager.services.git.branches import BranchService
from worktree_manager.services.git.commands import git_executable
from worktree_manager.services.git.worktrees import WorktreeService

logger = get_logger(__name__)

# Unit separator keeps commit subjects with spaces or pipes intact
_FIELD_SEP = "\x1f"


def detect_dependencies(worktree_path: str) -> tuple[str, str]:
    """Guess the project's package manager and whether dependencies are installed.

    Returns:
        Tuple of (dependency_type, installed) where installed is
        "true", "false" or "unknown"
    """
    for marker in DEPENDENCY_MARKERS:
        if not any(os.path.isfile(os.path.join(worktree_path, m)) for m in marker.manifests):
            continue
        if not marker.install_markers:
            return marker.dependency_type, "true"
        if any(os.path.exists(os.path.join(worktree_path, m)) for m in marker.install_markers):
            return marker.dependency_type, "true"
        return marker.dependency_type, marker.missing_state
    return "none", "unknown"


class WorktreeStatusService:
    """Builds WorktreeStatus snapshots. Never mutates anything."""

    def __init__(self, worktree_service: WorktreeService, branch_service: Optional[BranchService] = None):
        self.worktree_service = worktree_service
        self.branch_service = branch_service or BranchService(worktree_service.repo_path)

    def _git_in(self, worktree_path: str, *args: str) -> str:
        """Run a git command against a worktree via -C."""
        repo = git.Repo(self.worktree_service.repo_path)
        try:
            return repo.git.execute([git_executable(), "-C", worktree_path, *args])
        finally:
            repo.close()

    def get_worktree_status(self, path: str, base_branch: Optional[str] = None) -> WorktreeStatus:
        """Get a detailed status snapshot of one worktree.

        Args:
            path: Worktree path (relative paths resolve against the current directory)
            base_branch: Integration branch for the unmerged count (auto-detected if None)

        Returns:
            WorktreeStatus; fields stay at their defaults when the directory is
            missing or not a registered worktree
        """
        abs_path = os.path.abspath(path)
        status = WorktreeStatus(path=abs_path, exists=os.path.isdir(abs_path))
        if not status.exists:
            return status

        try:
            worktree = self.worktree_service.find_worktree(abs_path)
        except WorktreeNotFoundError:
            logger.debug(f"{abs_path} is not a registered worktree")
            return status

        status.path = worktree.path
        status.is_valid_worktree = True
        status.branch = worktree.branch
        status.head = worktree.head[:12]
        status.base_branch = base_branch or self.branch_service.detect_base_branch()

        try:
            status.changed_files = self.worktree_service.changed_files(worktree.path)
        except GitOperationError as e:
            logger.warning(f"Could not check worktree status for {worktree.path}: {e}")

        tip = worktree.head if worktree.is_detached else worktree.branch
        if status.base_branch and tip and tip != status.base_branch:
            try:
                status.unmerged_count = len(self.branch_service.unmerged_commits(tip, status.base_branch))
            except GitOperationError as e:
                logger.warning(f"Could not count unmerged commits for {tip}: {e}")

        if not worktree.is_detached:
            self._fill_tracking(status, worktree.path, worktree.branch)
        self._fill_last_commit(status, worktree.path)
        status.dependency_type, status.dependencies_installed = detect_dependencies(worktree.path)
        return status

    def _fill_tracking(self, status: WorktreeStatus, worktree_path: str, branch: str) -> None:
        """Ahead/behind counts relative to the branch's upstream, if it has one."""
        try:
            upstream = self._git_in(worktree_path, "rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}")
        except git.exc.GitCommandError:
            logger.debug(f"{branch} has no upstream")
            return
        status.upstream = upstream.strip()
        try:
            counts = self._git_in(
                worktree_path, "rev-list", "--left-right", "--count", f"{status.upstream}...{branch}"
            )
            behind, ahead = counts.split()
            status.behind, status.ahead = int(behind), int(ahead)
        except (git.exc.GitCommandError, ValueError) as e:
            logger.debug(f"Could not compute ahead/behind for {branch}: {e}")

    def _fill_last_commit(self, status: WorktreeStatus, worktree_path: str) -> None:
        """Last commit summary, relative date and author."""
        fmt = _FIELD_SEP.join(["%h %s", "%cr", "%an"])
        try:
            output = self._git_in(worktree_path, "log", "-1", f"--format={fmt}")
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not read last commit in {worktree_path}: {e}")
            return
        parts = output.split(_FIELD_SEP)
        if len(parts) == 3:
            status.last_commit, status.last_commit_date, status.last_commit_author = parts
