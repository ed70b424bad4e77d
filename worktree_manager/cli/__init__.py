"""Command-line interface for worktree-manager.

This package provides the CLI entry points and argument parsing.
"""

from .main import cleanup_main, create_main, list_main, status_main

__all__ = ["cleanup_main", "create_main", "list_main", "status_main"]
