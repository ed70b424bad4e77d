"""Command-line argument parsing for worktree-manager."""

import argparse

from worktree_manager.__version__ import __version__
from worktree_manager.constants import (
    DEFAULT_NETWORK_TIMEOUT,
    DEFAULT_REMOTE,
    DEFAULT_REMOVAL_TIMEOUT,
    ENV_HANDLE_CHECK,
    ENV_NETWORK_TIMEOUT,
    ENV_REMOVAL_TIMEOUT,
    MIN_TIMEOUT,
    PROTECTED_BRANCHES,
)
from worktree_manager.exceptions import UsageError


class WorktreeArgumentParser(argparse.ArgumentParser):
    """ArgumentParser whose usage errors exit 1.

    argparse exits 2 on bad arguments, but 2 means a safety check failed.
    """

    def error(self, message):
        raise UsageError(message)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument("--version", action="version", version=f"worktree-manager {__version__}")


def build_cleanup_parser() -> WorktreeArgumentParser:
    parser = WorktreeArgumentParser(
        prog="worktree-cleanup",
        description="Safely remove a git worktree and decide what happens to its branch",
        epilog=(
            f"Environment: {ENV_REMOVAL_TIMEOUT} and {ENV_NETWORK_TIMEOUT} set default timeouts "
            f"(flags win); {ENV_HANDLE_CHECK}=0 disables open file handle detection. "
            "Exit codes: 0 success, 1 error or locked, 2 uncommitted/unmerged work, "
            "3 branch disposition required, 4 timeout."
        ),
    )
    parser.add_argument("worktree_path", nargs="?", metavar="worktree-path", help="Path to the worktree")

    # Mutual exclusion is checked by CleanupConfig so the message names both flags
    parser.add_argument(
        "--keep-branch", action="store_true", help="Keep the branch after removing the worktree"
    )
    parser.add_argument(
        "--delete-branch",
        action="store_true",
        help="Delete the branch locally and on the remote after removing the worktree",
    )

    parser.add_argument(
        "--force",
        action="store_true",
        help="Proceed despite locks, uncommitted changes or unmerged commits (work may be lost)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run every safety check but only describe what would be removed",
    )
    parser.add_argument(
        "--skip-lock-check",
        action="store_true",
        help="Skip pre-removal lock and open file handle detection",
    )
    # Kept as strings so validation can name the offending value
    parser.add_argument(
        "--timeout",
        metavar="SECONDS",
        help=f"Worktree removal timeout (default {DEFAULT_REMOVAL_TIMEOUT}, minimum {MIN_TIMEOUT})",
    )
    parser.add_argument(
        "--network-timeout",
        metavar="SECONDS",
        help=f"Remote branch deletion timeout (default {DEFAULT_NETWORK_TIMEOUT}, minimum {MIN_TIMEOUT})",
    )
    parser.add_argument(
        "--base-branch", help="Branch to check for unmerged commits (default: develop, main or master)"
    )
    parser.add_argument(
        "--protected",
        nargs="*",
        default=list(PROTECTED_BRANCHES),
        help="Protected branches, never deleted",
    )
    parser.add_argument("--remote", default=DEFAULT_REMOTE, help="Remote for branch deletion")
    _add_common_arguments(parser)
    return parser


def parse_cleanup_args(argv=None) -> argparse.Namespace:
    """Parse worktree-cleanup arguments."""
    return build_cleanup_parser().parse_args(argv)


def parse_list_args(argv=None) -> argparse.Namespace:
    """Parse worktree-list arguments."""
    parser = WorktreeArgumentParser(
        prog="worktree-list", description="List all worktrees with their status"
    )
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--base-branch", help="Branch to count unmerged commits against")
    _add_common_arguments(parser)
    return parser.parse_args(argv)


def parse_status_args(argv=None) -> argparse.Namespace:
    """Parse worktree-status arguments."""
    parser = WorktreeArgumentParser(
        prog="worktree-status", description="Show a detailed health summary of one worktree"
    )
    parser.add_argument("worktree_path", metavar="worktree-path", help="Path to the worktree")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--base-branch", help="Branch to count unmerged commits against")
    _add_common_arguments(parser)
    return parser.parse_args(argv)


def parse_create_args(argv=None) -> argparse.Namespace:
    """Parse worktree-create arguments."""
    parser = WorktreeArgumentParser(
        prog="worktree-create",
        description="Create a worktree under trees/ on a new feature branch",
        epilog="Example: worktree-create PROJ-123 \"add auth\"  ->  trees/PROJ-123-add-auth",
    )
    parser.add_argument("task_id", metavar="task-id", help="Ticket or task identifier, e.g. PROJ-123")
    parser.add_argument("description", help="Short description, used in the directory and branch name")
    parser.add_argument("--base-branch", help="Branch to start from (default: develop, main or master)")
    _add_common_arguments(parser)
    return parser.parse_args(argv)
