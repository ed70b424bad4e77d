"""Structured, machine-readable diagnostics for blocked or degraded cleanups.

Reports render as a delimited block with one field per line so automated
callers can pull out ``ERROR_CODE``/``WARNING_CODE``, ``LOCK_REASON`` or
``PROCESSES`` without scraping prose. Field names and layout are a contract:

    === AI REMEDIATION GUIDE ===
    ERROR_CODE: WORKTREE_LOCKED
    WORKTREE_PATH: /abs/path
    LOCK_FILE: /abs/.git/worktrees/name/locked
    LOCK_REASON: deployment in progress

    REMEDIATION:
    1. UNLOCK_WORKTREE:
       git worktree unlock /abs/path
    === END AI REMEDIATION GUIDE ===
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from worktree_manager.constants import (
    ErrorCode,
    LARGE_DEPENDENCY_DIRS,
    NO_LOCK_REASON,
    REPORT_FOOTER,
    REPORT_HEADER,
    WarningCode,
)
from worktree_manager.models.safety import CommitSummary, OpenHandle

FieldValue = Union[str, int, Sequence[str]]


class Severity(Enum):
    """Blocking errors abort; warnings coexist with success."""

    ERROR = "ERROR"
    WARNING = "WARNING"


@dataclass
class RemediationStep:
    """A named fix made of literal shell commands."""

    title: str
    commands: List[str]


@dataclass
class RemediationReport:
    """A self-contained diagnostic for one condition."""

    code: str
    severity: Severity
    worktree_path: str
    fields: List[Tuple[str, FieldValue]] = field(default_factory=list)
    steps: List[RemediationStep] = field(default_factory=list)

    @property
    def code_key(self) -> str:
        return f"{self.severity.value}_CODE"

    def render(self) -> str:
        """Render the stable text block."""
        lines = [REPORT_HEADER, f"{self.code_key}: {self.code}", f"WORKTREE_PATH: {self.worktree_path}"]
        for key, value in self.fields:
            if isinstance(value, (list, tuple)):
                lines.append(f"{key}:")
                lines.extend(f"  {item}" for item in value)
            else:
                lines.append(f"{key}: {value}")
        if self.steps:
            lines.append("")
            lines.append("REMEDIATION:")
            for number, step in enumerate(self.steps, start=1):
                lines.append(f"{number}. {step.title}:")
                lines.extend(f"   {command}" for command in step.commands)
        lines.append(REPORT_FOOTER)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()


class RemediationReporter:
    """Builds RemediationReports whose commands can be run as-is."""

    def __init__(self, command_name: str = "worktree-cleanup"):
        self.command_name = command_name

    def _cleanup(self, path: str, *flags: str) -> str:
        """A worktree-cleanup invocation with the given flags."""
        parts = [self.command_name, shlex.quote(path)] + [f for f in flags if f]
        return " ".join(parts)

    def worktree_locked(
        self, path: str, lock_file: str, reason: Optional[str], disposition_flag: str = ""
    ) -> RemediationReport:
        return RemediationReport(
            code=ErrorCode.WORKTREE_LOCKED,
            severity=Severity.ERROR,
            worktree_path=path,
            fields=[("LOCK_FILE", lock_file), ("LOCK_REASON", reason or NO_LOCK_REASON)],
            steps=[
                RemediationStep("UNLOCK_WORKTREE", [f"git worktree unlock {shlex.quote(path)}"]),
                RemediationStep("FORCE_REMOVAL", [self._cleanup(path, disposition_flag, "--force")]),
                RemediationStep("SKIP_LOCK_CHECK", [self._cleanup(path, disposition_flag, "--skip-lock-check")]),
            ],
        )

    def uncommitted_changes(self, path: str, files: Sequence[str], disposition_flag: str = "") -> RemediationReport:
        quoted = shlex.quote(path)
        return RemediationReport(
            code=ErrorCode.UNCOMMITTED_CHANGES,
            severity=Severity.ERROR,
            worktree_path=path,
            fields=[("FILE_COUNT", len(files)), ("FILES", list(files))],
            steps=[
                RemediationStep("COMMIT_CHANGES", [
                    f"git -C {quoted} add -A",
                    f"git -C {quoted} commit -m \"WIP: save work before cleanup\"",
                ]),
                RemediationStep("STASH_CHANGES", [f"git -C {quoted} stash push --include-untracked"]),
                RemediationStep("FORCE_REMOVAL", [self._cleanup(path, disposition_flag, "--force")]),
            ],
        )

    def unmerged_commits(
        self,
        path: str,
        branch: str,
        base_branch: str,
        commits: Sequence[CommitSummary],
        disposition_flag: str = "",
    ) -> RemediationReport:
        return RemediationReport(
            code=ErrorCode.UNMERGED_COMMITS,
            severity=Severity.ERROR,
            worktree_path=path,
            fields=[
                ("BRANCH", branch),
                ("BASE_BRANCH", base_branch),
                ("COMMIT_COUNT", len(commits)),
                ("COMMITS", [str(c) for c in commits]),
            ],
            steps=[
                RemediationStep("MERGE_FIRST", [
                    f"git switch {shlex.quote(base_branch)}",
                    f"git merge --no-ff {shlex.quote(branch)}",
                ]),
                RemediationStep("KEEP_BRANCH_AND_FORCE", [self._cleanup(path, "--keep-branch", "--force")]),
                RemediationStep("FORCE_REMOVAL", [self._cleanup(path, disposition_flag, "--force")]),
            ],
        )

    def disposition_required(self, path: str, branch: str) -> RemediationReport:
        return RemediationReport(
            code=ErrorCode.BRANCH_DISPOSITION_REQUIRED,
            severity=Severity.ERROR,
            worktree_path=path,
            fields=[("BRANCH", branch)],
            steps=[
                RemediationStep("KEEP_BRANCH", [self._cleanup(path, "--keep-branch")]),
                RemediationStep("DELETE_BRANCH", [self._cleanup(path, "--delete-branch")]),
            ],
        )

    def timeout(
        self,
        path: str,
        seconds: int,
        operation: str,
        disposition_flag: str = "",
        remote_branch: Optional[Tuple[str, str]] = None,
        completed: Sequence[str] = (),
    ) -> RemediationReport:
        """Timeout report.

        Args:
            remote_branch: (remote, branch) when the network deletion timed out
            completed: Steps that already finished and were not rolled back
        """
        fields: List[Tuple[str, FieldValue]] = [("TIMEOUT_SECONDS", seconds), ("OPERATION", operation)]
        if completed:
            fields.append(("COMPLETED_STEPS", list(completed)))

        if remote_branch:
            remote, branch = (shlex.quote(part) for part in remote_branch)
            steps = [
                RemediationStep("RETRY_WITH_LONGER_NETWORK_TIMEOUT", [
                    f"timeout {max(seconds * 2, 60)} git push {remote} --delete {branch}",
                ]),
                RemediationStep("CHECK_REMOTE", ["git remote -v", f"git ls-remote --heads {remote} {branch}"]),
            ]
        else:
            quoted = shlex.quote(path)
            steps = [
                RemediationStep("RETRY_WITH_LONGER_TIMEOUT", [
                    self._cleanup(path, disposition_flag, "--timeout", str(max(seconds * 2, 300))),
                ]),
                RemediationStep(
                    "PRE_DELETE_LARGE_DIRECTORIES",
                    [f"rm -rf {shlex.quote(path.rstrip('/') + '/' + d)}" for d in LARGE_DEPENDENCY_DIRS]
                    + [self._cleanup(path, disposition_flag)],
                ),
                RemediationStep("FORCE_PRUNE_WORKTREE", [f"rm -rf {quoted}", "git worktree prune"]),
            ]
        return RemediationReport(
            code=ErrorCode.TIMEOUT,
            severity=Severity.ERROR,
            worktree_path=path,
            fields=fields,
            steps=steps,
        )

    def removal_failed(self, path: str, exit_status: int, details: str, disposition_flag: str = "") -> RemediationReport:
        return RemediationReport(
            code=ErrorCode.REMOVAL_FAILED,
            severity=Severity.ERROR,
            worktree_path=path,
            fields=[("EXIT_STATUS", exit_status), ("DETAILS", details or "(no output)")],
            steps=[
                RemediationStep("INSPECT_WORKTREE", [f"git -C {shlex.quote(path)} status"]),
                RemediationStep("FORCE_REMOVAL", [self._cleanup(path, disposition_flag, "--force")]),
            ],
        )

    def open_file_handles(self, path: str, handles: Sequence[OpenHandle]) -> RemediationReport:
        pids = " ".join(str(h.pid) for h in handles)
        return RemediationReport(
            code=WarningCode.OPEN_FILE_HANDLES,
            severity=Severity.WARNING,
            worktree_path=path,
            fields=[("PROCESSES", [str(h) for h in handles])],
            steps=[
                RemediationStep("LIST_OPEN_FILES", [f"lsof +D {shlex.quote(path)}"]),
                RemediationStep("STOP_PROCESSES", [f"kill {pids}"]),
            ],
        )

    def worktree_missing(self, path: str) -> RemediationReport:
        return RemediationReport(
            code=WarningCode.WORKTREE_MISSING,
            severity=Severity.WARNING,
            worktree_path=path,
            fields=[("DETAILS", "Registered worktree directory no longer exists; metadata will be pruned")],
            steps=[RemediationStep("PRUNE_METADATA", ["git worktree prune"])],
        )

    def remote_delete_failed(
        self, path: str, branch: str, remote: str, details: str, completed: Sequence[str] = ()
    ) -> RemediationReport:
        fields: List[Tuple[str, FieldValue]] = [
            ("BRANCH", branch),
            ("REMOTE", remote),
            ("DETAILS", details or "(no output)"),
        ]
        if completed:
            fields.append(("COMPLETED_STEPS", list(completed)))
        return RemediationReport(
            code=WarningCode.REMOTE_BRANCH_DELETE_FAILED,
            severity=Severity.WARNING,
            worktree_path=path,
            fields=fields,
            steps=[RemediationStep("RETRY_REMOTE_DELETE", [
                f"git push {shlex.quote(remote)} --delete {shlex.quote(branch)}",
            ])],
        )
