"""Shared constants for worktree-manager."""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, List, Tuple


class ExitCode(IntEnum):
    """Process exit codes for worktree-cleanup."""

    SUCCESS = 0
    ERROR = 1  # Invalid input, lock blocked, git failure
    SAFETY_CHECK_FAILED = 2  # Uncommitted changes or unmerged commits
    DISPOSITION_REQUIRED = 3  # No --keep-branch or --delete-branch
    TIMEOUT = 4


class BranchDisposition(Enum):
    """What happens to a worktree's branch once the worktree is gone."""

    KEEP = "keep"
    DELETE = "delete"


# Branches that are never deleted and never need a disposition flag
PROTECTED_BRANCHES: List[str] = ["develop", "main", "master"]

# Candidate integration branches, in order of preference
BASE_BRANCH_CANDIDATES: List[str] = ["develop", "main", "master"]

DETACHED_BRANCH = "detached"
DEFAULT_REMOTE = "origin"

# Where worktree-create puts new worktrees, relative to the project root
TREES_DIR = "trees"
FEATURE_BRANCH_PREFIX = "feature/"


# Timeouts (seconds)
DEFAULT_REMOVAL_TIMEOUT = 120
DEFAULT_NETWORK_TIMEOUT = 30
MIN_TIMEOUT = 10
HANDLE_CHECK_TIMEOUT = 10

# Same sentinel GNU timeout uses when the deadline expires
TIMEOUT_EXIT_CODE = 124
COMMAND_NOT_FOUND_EXIT_CODE = 127
KILLED_EXIT_CODE = 137


# Environment variables
ENV_REMOVAL_TIMEOUT = "WORKTREE_REMOVE_TIMEOUT"
ENV_NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
ENV_HANDLE_CHECK = "WORKTREE_HANDLE_CHECK"


# Remediation report delimiters
REPORT_HEADER = "=== AI REMEDIATION GUIDE ==="
REPORT_FOOTER = "=== END AI REMEDIATION GUIDE ==="
NO_LOCK_REASON = "(no reason provided)"


class ErrorCode:
    """Symbolic codes for blocking conditions."""

    WORKTREE_LOCKED = "WORKTREE_LOCKED"
    UNCOMMITTED_CHANGES = "UNCOMMITTED_CHANGES"
    UNMERGED_COMMITS = "UNMERGED_COMMITS"
    BRANCH_DISPOSITION_REQUIRED = "BRANCH_DISPOSITION_REQUIRED"
    TIMEOUT = "TIMEOUT"
    REMOVAL_FAILED = "REMOVAL_FAILED"


class WarningCode:
    """Symbolic codes for informational conditions."""

    OPEN_FILE_HANDLES = "OPEN_FILE_HANDLES"
    WORKTREE_MISSING = "WORKTREE_MISSING"
    REMOTE_BRANCH_DELETE_FAILED = "REMOTE_BRANCH_DELETE_FAILED"


@dataclass
class DependencyMarker:
    """How to tell whether a project's dependencies are installed."""

    dependency_type: str
    manifests: Tuple[str, ...]
    install_markers: Tuple[str, ...]
    missing_state: str = "false"  # Reported when no install marker is present


# Checked in order; the first matching manifest wins
DEPENDENCY_MARKERS: List[DependencyMarker] = [
    DependencyMarker("nodejs", ("package.json",), ("node_modules",)),
    DependencyMarker("python", ("pyproject.toml", "requirements.txt"), (".venv", "venv"), "unknown"),
    DependencyMarker("ruby", ("Gemfile",), ("vendor/bundle", "Gemfile.lock"), "unknown"),
    DependencyMarker("php", ("composer.json",), ("vendor",)),
    DependencyMarker("go", ("go.mod",), ()),
    DependencyMarker("rust", ("Cargo.toml",), ("target",)),
]

# Large directories worth deleting up front when removal times out
LARGE_DEPENDENCY_DIRS: List[str] = ["node_modules", ".venv"]


# Gauge bars for the card vocabulary
GAUGE_STATES: Dict[str, Tuple[str, str]] = {
    "LANDED": ("██████████", "LANDED"),
    "ON_APPROACH": ("████████░░", "ON APPROACH"),
    "IN_FLIGHT": ("██████░░░░", "IN FLIGHT"),
    "TAKING_OFF": ("███░░░░░░░", "TAKING OFF"),
    "TAXIING": ("░░░░░░░░░░", "TAXIING"),
    "FAULT": ("░░░░!!░░░░", "FAULT"),
}

HEAVY_RULE = "━" * 36

# Log prefixes (rich color, symbol)
STEP_PREFIX = ("blue", "▸")
OK_PREFIX = ("green", "+")
WARN_PREFIX = ("yellow", "~")
FAIL_PREFIX = ("red", "x")
