"""Custom exceptions for worktree-manager"""

from typing import Optional


class WorktreeManagerError(Exception):
    """Base exception for all worktree-manager errors."""
    pass


class ConfigurationError(WorktreeManagerError):
    """Exception raised for invalid configuration or arguments."""
    pass


class UsageError(ConfigurationError):
    """Exception raised for bad command-line usage."""
    pass


class InvalidTimeoutError(ConfigurationError):
    """Exception raised when a timeout value fails validation."""

    def __init__(self, source: str, value: str, minimum: int):
        self.source = source
        self.value = value
        self.minimum = minimum
        super().__init__(
            f"Invalid timeout value for {source}: '{value}' "
            f"(must be a positive integer >= {minimum})"
        )


class GitOperationError(WorktreeManagerError):
    """Exception raised for errors in Git operations."""

    def __init__(
        self,
        operation: str,
        target: Optional[str] = None,
        message: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.operation = operation
        self.target = target
        self.message = message
        self.status = status

        error_msg = f"Git operation '{operation}' failed"
        if target:
            error_msg += f" for '{target}'"
        if status is not None:
            error_msg += f" (exit {status})"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class NotARepositoryError(GitOperationError):
    """Exception raised when a path is not inside a git repository."""

    def __init__(self, path: str):
        super().__init__("find_repository", path, "Not in a git repository")


class WorktreeNotFoundError(GitOperationError):
    """Exception raised when a path is not a registered worktree."""

    def __init__(self, path: str):
        super().__init__("find_worktree", path, "Not a registered git worktree")
