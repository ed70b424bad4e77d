"""
worktree-manager - Safe git worktree lifecycle management
"""

from .__version__ import __version__
from .core import CleanupOrchestrator, CleanupResult

__all__ = ["CleanupOrchestrator", "CleanupResult", "__version__"]
