"""Creating task worktrees under <project root>/trees/."""

import os
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from worktree_manager.constants import BASE_BRANCH_CANDIDATES, FEATURE_BRANCH_PREFIX, TREES_DIR
from worktree_manager.exceptions import ConfigurationError
from worktree_manager.logging_config import get_logger
from worktree_manager.models.worktree import Worktree
from worktree_manager.services.git.branches import BranchService
from worktree_manager.services.git.worktrees import WorktreeService

logger = get_logger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]")


def normalize_description(description: str) -> str:
    """Lowercase, spaces to dashes, drop anything outside [a-z0-9-].

    >>> normalize_description("Add OAuth Login!")
    'add-oauth-login'
    """
    text = description.strip().lower().replace(" ", "-")
    return _INVALID_NAME_CHARS.sub("", text)


@dataclass
class CreatedWorktree:
    """What worktree-create made, plus anything worth a second look."""

    worktree: Worktree
    branch: str
    base_branch: str
    related_commits: List[str] = field(default_factory=list)


class WorktreeCreator:
    """Creates one worktree per task on a new feature branch."""

    def __init__(self, worktree_service: WorktreeService, branch_service: Optional[BranchService] = None):
        self.worktree_service = worktree_service
        self.branch_service = branch_service or BranchService(worktree_service.project_root)

    def plan(self, task_id: str, description: str) -> Tuple[str, str, str]:
        """Return (name, path, branch) for a task without touching anything.

        Raises:
            ConfigurationError: If task_id or the normalized description is empty
        """
        task_id = task_id.strip()
        if not task_id:
            raise ConfigurationError("Task id must not be empty")
        slug = normalize_description(description)
        if not slug:
            raise ConfigurationError(f"Description '{description}' has no usable characters")
        name = f"{task_id}-{slug}"
        path = os.path.join(self.worktree_service.project_root, TREES_DIR, name)
        return name, path, f"{FEATURE_BRANCH_PREFIX}{name}"

    def create(self, task_id: str, description: str, base_branch: Optional[str] = None) -> CreatedWorktree:
        """Create the worktree and its branch.

        Raises:
            ConfigurationError: If no base branch exists, or the path or branch is taken
            GitOperationError: If git refuses to add the worktree
        """
        base = base_branch or self.branch_service.detect_base_branch()
        if not base:
            raise ConfigurationError(
                f"No base branch found (tried {', '.join(BASE_BRANCH_CANDIDATES)}); use --base-branch"
            )
        if not self.branch_service.branch_exists(base):
            raise ConfigurationError(f"Base branch '{base}' does not exist")

        _, path, branch = self.plan(task_id, description)
        if os.path.exists(path):
            raise ConfigurationError(f"Worktree directory already exists: {path}")
        if self.branch_service.branch_exists(branch):
            raise ConfigurationError(f"Branch already exists: {branch}")

        related = self.branch_service.commits_mentioning(base, task_id.strip())
        if related:
            logger.info(f"{len(related)} commit(s) on {base} already mention {task_id}")

        os.makedirs(os.path.dirname(path), exist_ok=True)
        worktree = self.worktree_service.add_worktree(path, branch, base)
        return CreatedWorktree(worktree=worktree, branch=branch, base_branch=base, related_commits=related)
