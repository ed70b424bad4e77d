"""Configuration handling for worktree-manager"""

import os
import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from worktree_manager.constants import (
    BranchDisposition,
    DEFAULT_NETWORK_TIMEOUT,
    DEFAULT_REMOTE,
    DEFAULT_REMOVAL_TIMEOUT,
    ENV_NETWORK_TIMEOUT,
    ENV_REMOVAL_TIMEOUT,
    MIN_TIMEOUT,
    PROTECTED_BRANCHES,
)
from worktree_manager.exceptions import InvalidTimeoutError, UsageError

_DIGITS = re.compile(r"^[0-9]+$")


def parse_timeout(source: str, value) -> int:
    """Validate a timeout value and return it as an int.

    Args:
        source: Flag or environment variable the value came from (used in errors)
        value: Raw value, usually a string

    Raises:
        InvalidTimeoutError: If the value is not a whole number >= MIN_TIMEOUT
    """
    text = str(value).strip()
    if not _DIGITS.match(text) or int(text) < MIN_TIMEOUT:
        raise InvalidTimeoutError(source, str(value), MIN_TIMEOUT)
    return int(text)


@dataclass
class TimeoutPolicy:
    """Independent deadlines for disk-bound and network-bound operations."""

    removal_timeout: int = DEFAULT_REMOVAL_TIMEOUT
    network_timeout: int = DEFAULT_NETWORK_TIMEOUT

    def __post_init__(self):
        self.removal_timeout = parse_timeout("removal_timeout", self.removal_timeout)
        self.network_timeout = parse_timeout("network_timeout", self.network_timeout)

    @classmethod
    def resolve(
        cls,
        removal_flag: Optional[str] = None,
        network_flag: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "TimeoutPolicy":
        """Build a policy from flag > environment variable > default.

        Args:
            removal_flag: Value of --timeout, if given
            network_flag: Value of --network-timeout, if given
            environ: Environment mapping (defaults to os.environ)
        """
        if environ is None:
            environ = os.environ

        if removal_flag is not None:
            removal = parse_timeout("--timeout", removal_flag)
        elif environ.get(ENV_REMOVAL_TIMEOUT):
            removal = parse_timeout(ENV_REMOVAL_TIMEOUT, environ[ENV_REMOVAL_TIMEOUT])
        else:
            removal = DEFAULT_REMOVAL_TIMEOUT

        if network_flag is not None:
            network = parse_timeout("--network-timeout", network_flag)
        elif environ.get(ENV_NETWORK_TIMEOUT):
            network = parse_timeout(ENV_NETWORK_TIMEOUT, environ[ENV_NETWORK_TIMEOUT])
        else:
            network = DEFAULT_NETWORK_TIMEOUT

        return cls(removal_timeout=removal, network_timeout=network)


@dataclass
class CleanupConfig:
    """Configuration for a single worktree-cleanup invocation."""

    worktree_path: str = ""

    # Branch disposition (at most one may be set)
    keep_branch: bool = False
    delete_branch: bool = False

    # Safety overrides
    force: bool = False
    dry_run: bool = False
    skip_lock_check: bool = False

    timeouts: TimeoutPolicy = field(default_factory=TimeoutPolicy)

    # Branch policy
    base_branch: Optional[str] = None  # None = auto-detect develop/main/master
    protected_branches: List[str] = field(default_factory=lambda: list(PROTECTED_BRANCHES))
    remote_name: str = DEFAULT_REMOTE

    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_worktree_path()
        self._validate_disposition()
        self._validate_protected_branches()

    def _validate_worktree_path(self):
        """Validate a worktree path was given."""
        if not self.worktree_path or not str(self.worktree_path).strip():
            raise UsageError("Missing required argument: worktree-path")
        self.worktree_path = str(self.worktree_path).strip()

    def _validate_disposition(self):
        """Validate --keep-branch and --delete-branch are not both set."""
        if self.keep_branch and self.delete_branch:
            raise UsageError("Cannot specify both --keep-branch and --delete-branch")

    def _validate_protected_branches(self):
        """Validate protected_branches list."""
        if not isinstance(self.protected_branches, list):
            raise ValueError("protected_branches must be a list")

    @property
    def disposition(self) -> Optional[BranchDisposition]:
        """The requested branch disposition, or None if unspecified."""
        if self.delete_branch:
            return BranchDisposition.DELETE
        if self.keep_branch:
            return BranchDisposition.KEEP
        return None

    @property
    def disposition_flag(self) -> str:
        """The CLI flag matching the disposition, for remediation commands."""
        if self.delete_branch:
            return "--delete-branch"
        if self.keep_branch:
            return "--keep-branch"
        return ""

    def is_protected(self, branch: Optional[str]) -> bool:
        """Check whether a branch is in the protected set."""
        return bool(branch) and branch in self.protected_branches

    def to_dict(self) -> dict:
        """Convert config to a dictionary (used for --debug output)."""
        return {
            "worktree_path": self.worktree_path,
            "keep_branch": self.keep_branch,
            "delete_branch": self.delete_branch,
            "force": self.force,
            "dry_run": self.dry_run,
            "skip_lock_check": self.skip_lock_check,
            "removal_timeout": self.timeouts.removal_timeout,
            "network_timeout": self.timeouts.network_timeout,
            "base_branch": self.base_branch,
            "protected_branches": self.protected_branches,
            "remote_name": self.remote_name,
            "verbose": self.verbose,
            "debug": self.debug,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return self.to_dict().get(key, default)
