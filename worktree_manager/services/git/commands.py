"""Helpers shared by the git services."""

import git

from worktree_manager.exceptions import GitOperationError


def git_executable() -> str:
    """The git binary GitPython resolved, for commands run outside GitPython."""
    return git.Git.GIT_PYTHON_GIT_EXECUTABLE or "git"


def to_operation_error(operation: str, target: str, error: git.exc.GitCommandError) -> GitOperationError:
    """Convert a GitCommandError into a GitOperationError with git's own message.

    Args:
        operation: Short name of the operation that failed
        target: Path or branch the operation was acting on
        error: The GitPython error
    """
    stderr = (error.stderr if getattr(error, "stderr", None) else str(error)).strip()
    # GitPython prefixes captured stderr with "stderr: '...'"
    if stderr.startswith("stderr: "):
        stderr = stderr[len("stderr: "):].strip("'").strip()
    status = error.status if isinstance(getattr(error, "status", None), int) else None
    return GitOperationError(operation, target, stderr or None, status)
