"""Cleanup orchestration: the safe worktree removal state machine."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from worktree_manager.config import CleanupConfig
from worktree_manager.constants import BranchDisposition, ExitCode, NO_LOCK_REASON
from worktree_manager.exceptions import GitOperationError, NotARepositoryError
from worktree_manager.logging_config import get_logger
from worktree_manager.models.worktree import Worktree
from worktree_manager.services.display_service import DisplayService
from worktree_manager.services.executor import TimeoutExecutor
from worktree_manager.services.git.branches import BranchService
from worktree_manager.services.git.worktrees import WorktreeService
from worktree_manager.services.handles import OpenHandleDetector
from worktree_manager.services.remediation import RemediationReport, RemediationReporter, Severity
from worktree_manager.services.safety_inspector import SafetyInspector

logger = get_logger(__name__)


class CleanupState(Enum):
    """States of a cleanup run. BLOCKED and DONE are terminal."""

    START = "start"
    VALIDATE_ARGS = "validate_args"
    LOCK_CHECK = "lock_check"
    UNCOMMITTED_CHECK = "uncommitted_check"
    UNMERGED_CHECK = "unmerged_check"
    OPEN_HANDLE_CHECK = "open_handle_check"
    REMOVE_WORKTREE = "remove_worktree"
    DELETE_BRANCH = "delete_branch"
    KEEP_BRANCH = "keep_branch"
    DONE = "done"
    BLOCKED = "blocked"


@dataclass
class CleanupResult:
    """Outcome of a cleanup run."""

    exit_code: ExitCode
    state: CleanupState
    worktree_path: str
    branch: Optional[str] = None
    branch_outcome: str = ""
    dry_run: bool = False
    reports: List[RemediationReport] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    planned_steps: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == ExitCode.SUCCESS

    @property
    def error_report(self) -> Optional[RemediationReport]:
        for report in self.reports:
            if report.severity == Severity.ERROR:
                return report
        return None


class _Blocked(Exception):
    """Internal signal: a gate stopped the run."""

    def __init__(self, exit_code: ExitCode):
        self.exit_code = exit_code
        super().__init__(exit_code.name)


class CleanupOrchestrator:
    """Drive one worktree cleanup from argument validation to summary.

    Gates run in a fixed order, cheapest first: disposition, lock,
    uncommitted changes, unmerged commits, then the non-blocking open
    handle scan. Only then is anything mutated, through the timeout-guarded
    executor, from the project root and never from inside the worktree.
    """

    def __init__(
        self,
        config: CleanupConfig,
        repo_path: Optional[str] = None,
        worktree_service: Optional[WorktreeService] = None,
        branch_service: Optional[BranchService] = None,
        inspector: Optional[SafetyInspector] = None,
        executor: Optional[TimeoutExecutor] = None,
        reporter: Optional[RemediationReporter] = None,
        display: Optional[DisplayService] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Validated cleanup configuration
            repo_path: Where to look for the repository when the worktree
                directory no longer exists (defaults to the current directory)
            worktree_service, branch_service, inspector, executor, reporter,
            display: Collaborators, created on demand when not supplied
        """
        self.config = config
        self.repo_path = repo_path
        self.worktree_service = worktree_service
        self.branch_service = branch_service
        self.inspector = inspector
        self.executor = executor or TimeoutExecutor()
        self.reporter = reporter or RemediationReporter()
        self.display = display or DisplayService()
        self.state = CleanupState.START
        self._result: Optional[CleanupResult] = None

    # --- Plumbing ---

    def _transition(self, state: CleanupState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def _warn(self, message: str) -> None:
        self._result.warnings.append(message)
        self.display.log_warn(message)

    def _emit(self, report: RemediationReport) -> None:
        self._result.reports.append(report)
        self.display.report(report)

    def _block(self, exit_code: ExitCode, message: str, report: Optional[RemediationReport] = None):
        """Report a blocking condition and stop the run."""
        self.display.log_fail(message)
        if report is not None:
            self._emit(report)
        raise _Blocked(exit_code)

    def _ensure_services(self, path: str) -> None:
        """Create any collaborators that were not injected."""
        if self.worktree_service is None:
            try:
                self.worktree_service = WorktreeService.discover(path)
            except NotARepositoryError:
                # An orphaned worktree may have taken its parents with it
                if os.path.exists(path):
                    raise
                self.worktree_service = WorktreeService.discover(self.repo_path or os.getcwd())
        root = self.worktree_service.project_root
        if self.branch_service is None:
            self.branch_service = BranchService(root, remote_name=self.config.remote_name)
        if self.inspector is None:
            self.inspector = SafetyInspector(
                self.worktree_service,
                self.branch_service,
                OpenHandleDetector(executor=self.executor),
            )

    # --- Entry point ---

    def run(self) -> CleanupResult:
        """Run the cleanup and return its result; never raises for gate failures."""
        path = os.path.abspath(os.path.expanduser(self.config.worktree_path))
        self._result = CleanupResult(
            exit_code=ExitCode.SUCCESS,
            state=CleanupState.START,
            worktree_path=path,
            dry_run=self.config.dry_run,
        )
        try:
            self._run(path)
            self._transition(CleanupState.DONE)
        except _Blocked as blocked:
            self._result.exit_code = blocked.exit_code
            self._transition(CleanupState.BLOCKED)
        except GitOperationError as e:
            logger.debug(f"Git failure during cleanup: {e}")
            self.display.log_fail(str(e))
            self._result.exit_code = ExitCode.ERROR
            self._transition(CleanupState.BLOCKED)
        self._result.state = self.state
        return self._result

    def _run(self, path: str) -> None:
        config = self.config

        # VALIDATE_ARGS: cheap checks only, before any inspection
        self._transition(CleanupState.VALIDATE_ARGS)
        self._ensure_services(path)
        worktree = self.worktree_service.find_worktree(path)
        self._result.worktree_path = worktree.path
        root = self.worktree_service.project_root

        self.display.log_step(f"Worktree: {worktree.path}")
        self.display.log_step(f"Project root: {root}")

        if worktree.is_main:
            self._block(ExitCode.ERROR, f"Refusing to remove the main worktree: {worktree.path}")

        branch = None if worktree.is_detached else worktree.branch
        self._result.branch = branch
        protected = config.is_protected(branch)
        if branch:
            self.display.log_step(f"Associated branch: {branch}")
        if protected:
            self.display.log_step(f"Branch '{branch}' is a protected branch (will not be deleted)")

        if branch and not protected and config.disposition is None:
            self._block(
                ExitCode.DISPOSITION_REQUIRED,
                f"Branch disposition required for non-protected branch '{branch}'",
                self.reporter.disposition_required(worktree.path, branch),
            )

        self._check_lock(worktree)

        if not os.path.isdir(worktree.path):
            self._warn("Worktree directory no longer exists; only its metadata will be pruned")
            self._emit(self.reporter.worktree_missing(worktree.path))

        self._check_uncommitted(worktree)
        if not protected:
            self._check_unmerged(worktree, branch)
        self._check_open_handles(worktree)

        if config.dry_run:
            self._show_plan(worktree, branch, protected)
            return

        self._remove_worktree(worktree)
        self._dispose_branch(worktree, branch, protected)
        self._show_summary(worktree, branch)

    # --- Gates ---

    def _check_lock(self, worktree: Worktree) -> None:
        if self.config.skip_lock_check:
            return
        self._transition(CleanupState.LOCK_CHECK)
        lock_file, reason = self.inspector.check_lock(worktree)
        if reason is None:
            return
        shown = reason or NO_LOCK_REASON
        if self.config.force:
            self._warn(f"Worktree is locked (bypassing due to --force): {shown}")
            return
        self._block(
            ExitCode.ERROR,
            "Worktree is locked and cannot be removed",
            self.reporter.worktree_locked(worktree.path, lock_file, reason, self.config.disposition_flag),
        )

    def _check_uncommitted(self, worktree: Worktree) -> None:
        self._transition(CleanupState.UNCOMMITTED_CHECK)
        files = self.inspector.find_uncommitted_changes(worktree)
        if not files:
            return
        if self.config.force:
            self._warn(f"Worktree has {len(files)} uncommitted change(s) that will be lost (--force)")
            return
        self._block(
            ExitCode.SAFETY_CHECK_FAILED,
            "Worktree has uncommitted changes",
            self.reporter.uncommitted_changes(worktree.path, files, self.config.disposition_flag),
        )

    def _check_unmerged(self, worktree: Worktree, branch: Optional[str]) -> None:
        self._transition(CleanupState.UNMERGED_CHECK)
        base = self.inspector.resolve_base_branch(self.config.base_branch)
        commits = self.inspector.find_unmerged_commits(worktree, base)
        if not commits:
            return
        label = branch or worktree.head[:7]
        if self.config.force:
            self._warn(f"Branch {label} has {len(commits)} commit(s) not merged into {base} (--force)")
            if self.config.disposition == BranchDisposition.DELETE:
                self._warn("These commits will be lost when the branch is deleted")
            return
        self._block(
            ExitCode.SAFETY_CHECK_FAILED,
            f"Branch {label} has {len(commits)} unmerged commit(s) relative to {base}",
            self.reporter.unmerged_commits(worktree.path, label, base, commits, self.config.disposition_flag),
        )

    def _check_open_handles(self, worktree: Worktree) -> None:
        if self.config.skip_lock_check:
            return
        self._transition(CleanupState.OPEN_HANDLE_CHECK)
        handles = self.inspector.find_open_handles(worktree)
        if not handles:
            return
        self._warn("Open file handles detected in worktree directory")
        self._emit(self.reporter.open_file_handles(worktree.path, handles))
        self._warn("Open file handles may cause removal to fail or hang")

    # --- Dry run ---

    def _show_plan(self, worktree: Worktree, branch: Optional[str], protected: bool) -> None:
        timeouts = self.config.timeouts
        steps = []
        if os.path.isdir(worktree.path):
            steps.append(f"Remove worktree: {worktree.path} (timeout: {timeouts.removal_timeout}s)")
        else:
            steps.append(f"Prune missing worktree: {worktree.path} (timeout: {timeouts.removal_timeout}s)")

        if not branch:
            steps.append("Branch disposition: N/A (detached HEAD)")
        elif protected:
            steps.append(f"Branch disposition: SKIP (protected branch '{branch}')")
        elif self.config.disposition == BranchDisposition.KEEP:
            steps.append(f"Branch disposition: KEEP branch '{branch}'")
        else:
            steps.append(f"Branch disposition: DELETE branch '{branch}' (local)")
            if self.branch_service.has_remote_branch(branch):
                steps.append(
                    f"Branch disposition: DELETE branch '{branch}' "
                    f"(remote {self.config.remote_name}, timeout: {timeouts.network_timeout}s)"
                )
        steps.append("Prune stale worktree entries")
        self._result.planned_steps = steps

        rows = [
            "Mode          dry-run (no changes)",
            f"Worktree      {worktree.path}",
            f"Project root  {self.worktree_service.project_root}",
            "",
            "Planned steps:",
        ]
        rows.extend(f"  {number}. {step}" for number, step in enumerate(steps, start=1))
        self.display.card("DRY RUN", rows, gauge_state="TAXIING")

    # --- Mutations ---

    def _remove_worktree(self, worktree: Worktree) -> None:
        self._transition(CleanupState.REMOVE_WORKTREE)
        root = self.worktree_service.project_root
        timeout = self.config.timeouts.removal_timeout

        if _is_within(_current_directory(), worktree.path):
            self._warn(f"Current directory is inside the worktree being removed; run: cd {root}")

        bypass_lock = self.config.force or self.config.skip_lock_check
        flag = self.config.disposition_flag
        if worktree.locked and bypass_lock and not os.path.isdir(worktree.path):
            # Pruning is the only way out for a missing directory, and prune skips locked entries
            try:
                self.worktree_service.unlock_worktree(worktree)
            except GitOperationError as e:
                self._block(
                    ExitCode.ERROR,
                    "Could not unlock the missing worktree for pruning",
                    self.reporter.removal_failed(worktree.path, e.status or 1, e.message or str(e), flag),
                )

        self.display.log_step(f"Removing worktree (timeout: {timeout}s)...")
        command = self.worktree_service.removal_command(worktree, bypass_lock=bypass_lock)
        result = self.executor.run_with_timeout(timeout, command, cwd=root)

        if result.timed_out:
            self._block(
                ExitCode.TIMEOUT,
                f"Worktree removal timed out after {timeout} seconds",
                self.reporter.timeout(worktree.path, timeout, " ".join(command[1:3]), flag),
            )
        if not result.succeeded:
            self._block(
                ExitCode.ERROR,
                "Failed to remove worktree",
                self.reporter.removal_failed(worktree.path, result.exit_status, result.error_output, flag),
            )

        try:
            self.worktree_service.prune_worktrees()
        except GitOperationError as e:
            self._warn(f"Could not prune stale worktree entries: {e}")

        # A zero exit is not proof: prune quietly keeps entries it won't touch
        if self.worktree_service.is_registered(worktree.path):
            self._block(
                ExitCode.ERROR,
                "Worktree is still registered after removal",
                self.reporter.removal_failed(
                    worktree.path,
                    result.exit_status,
                    "git still lists this worktree after removal and prune",
                    flag,
                ),
            )
        self.display.log_ok(f"Worktree removed: {worktree.path}")

    def _dispose_branch(self, worktree: Worktree, branch: Optional[str], protected: bool) -> None:
        if not branch:
            self._result.branch_outcome = "detached HEAD, no branch"
            return
        if protected:
            self._transition(CleanupState.KEEP_BRANCH)
            self.display.log_step(f"Skipping branch deletion (protected branch: {branch})")
            self._result.branch_outcome = "protected, not deleted"
            return
        if self.config.disposition == BranchDisposition.KEEP:
            self._transition(CleanupState.KEEP_BRANCH)
            self.display.log_step(f"Keeping branch: {branch}")
            self._result.branch_outcome = "kept"
            return

        self._transition(CleanupState.DELETE_BRANCH)
        self.display.log_step(f"Deleting local branch: {branch}")
        local_deleted = False
        try:
            if self.branch_service.delete_local_branch(branch):
                self.display.log_ok(f"Local branch deleted: {branch}")
            else:
                self._warn(f"Local branch force-deleted (was not fully merged): {branch}")
            local_deleted = True
        except GitOperationError as e:
            self._warn(f"Could not delete local branch: {branch} ({e})")

        if not self.branch_service.has_remote_branch(branch):
            self.display.log_step("No remote branch to delete")
            self._result.branch_outcome = "deleted" if local_deleted else "local deletion failed"
            return

        self._delete_remote_branch(worktree, branch, local_deleted)

    def _delete_remote_branch(self, worktree: Worktree, branch: str, local_deleted: bool) -> None:
        remote = self.config.remote_name
        timeout = self.config.timeouts.network_timeout
        root = self.worktree_service.project_root

        self.display.log_step(f"Deleting remote branch: {remote}/{branch} (timeout: {timeout}s)...")
        command = self.branch_service.remote_delete_command(branch)
        result = self.executor.run_with_timeout(timeout, command, cwd=root)

        completed = ["worktree removed"]
        if local_deleted:
            completed.append("local branch deleted")

        if result.timed_out:
            self._result.branch_outcome = "remote deletion timed out"
            self.display.log_fail(f"Remote branch deletion timed out after {timeout} seconds")
            self._warn(f"Partial cleanup: {', '.join(completed)}; remote branch {remote}/{branch} still exists")
            self._block(
                ExitCode.TIMEOUT,
                "Cleanup incomplete: remote branch deletion did not finish",
                self.reporter.timeout(
                    worktree.path,
                    timeout,
                    f"git push {remote} --delete {branch}",
                    remote_branch=(remote, branch),
                    completed=completed,
                ),
            )
        if result.succeeded:
            self.display.log_ok(f"Remote branch deleted: {remote}/{branch}")
            self._result.branch_outcome = "deleted" if local_deleted else "remote deleted, local deletion failed"
            return

        self._warn(f"Could not delete remote branch: {remote}/{branch}")
        self._emit(
            self.reporter.remote_delete_failed(worktree.path, branch, remote, result.error_output, completed)
        )
        self._result.branch_outcome = "local deleted, remote deletion failed" if local_deleted else "deletion failed"

    def _show_summary(self, worktree: Worktree, branch: Optional[str]) -> None:
        rows = [f"Worktree  {worktree.path}"]
        if branch:
            rows.append(f"Branch    {branch} ({self._result.branch_outcome})")
        rows.append("Status    complete")
        partial = "failed" in self._result.branch_outcome
        self.display.card("CLEANUP", rows, gauge_state="ON_APPROACH" if partial else "LANDED")


def _current_directory() -> Optional[str]:
    try:
        return os.getcwd()
    except FileNotFoundError:
        return None


def _is_within(path: Optional[str], directory: str) -> bool:
    """True if path is directory or below it."""
    if not path:
        return False
    path = os.path.realpath(path)
    directory = os.path.realpath(directory)
    return path == directory or path.startswith(directory + os.sep)
