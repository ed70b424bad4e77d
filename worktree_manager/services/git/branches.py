"""Branch queries and mutations for worktree-manager."""

import git
from typing import List, Optional, Sequence

from worktree_manager.constants import BASE_BRANCH_CANDIDATES, DEFAULT_REMOTE
from worktree_manager.logging_config import get_logger
from worktree_manager.models.safety import CommitSummary
from worktree_manager.services.git.commands import git_executable, to_operation_error

logger = get_logger(__name__)


class BranchService:
    """Service for branch-level git operations, run from the project root."""

    def __init__(self, repo_path: str, remote_name: str = DEFAULT_REMOTE):
        """Initialize the service.

        Args:
            repo_path: Path to the main worktree of the repository
            remote_name: Remote used for remote-tracking checks and deletion
        """
        self.repo_path = repo_path
        self.remote_name = remote_name

    def _get_repo(self) -> git.Repo:
        """Get a fresh git.Repo instance."""
        return git.Repo(self.repo_path)

    def branch_exists(self, branch_name: str) -> bool:
        """Check whether a local branch exists."""
        repo = self._get_repo()
        try:
            return branch_name in [head.name for head in repo.heads]
        finally:
            repo.close()

    def detect_base_branch(
        self, candidates: Sequence[str] = tuple(BASE_BRANCH_CANDIDATES)
    ) -> Optional[str]:
        """Return the first existing integration branch (develop, then main, then master)."""
        repo = self._get_repo()
        try:
            existing = {head.name for head in repo.heads}
        finally:
            repo.close()
        for candidate in candidates:
            if candidate in existing:
                return candidate
        return None

    def unmerged_commits(self, tip: str, base_branch: str) -> List[CommitSummary]:
        """List commits reachable from tip but not from base_branch, newest first.

        Args:
            tip: Branch name or commit sha of the worktree
            base_branch: Integration branch to compare against

        Raises:
            GitOperationError: If either revision cannot be resolved
        """
        repo = self._get_repo()
        try:
            commits = []
            for commit in repo.iter_commits(f"{base_branch}..{tip}"):
                message = commit.message if isinstance(commit.message, str) else commit.message.decode("utf-8", errors="ignore")
                subject = message.strip().split("\n")[0]  # First line only
                commits.append(CommitSummary(sha=commit.hexsha[:7], subject=subject))
            return commits
        except git.exc.GitCommandError as e:
            raise to_operation_error("rev-list", f"{base_branch}..{tip}", e)
        finally:
            repo.close()

    def commits_mentioning(self, base_branch: str, text: str, limit: int = 5) -> List[str]:
        """One-line summaries of commits on base_branch whose message mentions text."""
        repo = self._get_repo()
        try:
            output = repo.git.log("--oneline", f"--max-count={limit}", "--fixed-strings", f"--grep={text}", base_branch)
        except git.exc.GitCommandError as e:
            logger.debug(f"Could not search {base_branch} for {text}: {e}")
            return []
        finally:
            repo.close()
        return [line for line in output.split("\n") if line.strip()]

    def has_remote_branch(self, branch_name: str) -> bool:
        """Check if the branch has a remote-tracking counterpart.

        Only local remote-tracking refs are consulted, so this never touches
        the network.
        """
        repo = self._get_repo()
        try:
            repo.git.show_ref("--verify", "--quiet", f"refs/remotes/{self.remote_name}/{branch_name}")
            return True
        except git.exc.GitCommandError as e:
            logger.debug(f"No remote-tracking ref for {branch_name}: {e}")
            return False
        finally:
            repo.close()

    def delete_local_branch(self, branch_name: str) -> bool:
        """Delete a local branch, forcing it if git considers it unmerged.

        Returns:
            True if a plain delete worked, False if it had to be forced

        Raises:
            GitOperationError: If the branch cannot be deleted at all
        """
        repo = self._get_repo()
        try:
            try:
                repo.delete_head(branch_name)
                logger.info(f"Deleted local branch {branch_name}")
                return True
            except git.exc.GitCommandError as e:
                logger.debug(f"git branch -d {branch_name} refused: {e}")
            try:
                repo.delete_head(branch_name, force=True)
                logger.info(f"Force-deleted local branch {branch_name}")
                return False
            except git.exc.GitCommandError as e:
                raise to_operation_error("branch delete", branch_name, e)
        finally:
            repo.close()

    def remote_delete_command(self, branch_name: str) -> List[str]:
        """Build the network command that deletes the branch on the remote."""
        return [git_executable(), "push", self.remote_name, "--delete", branch_name]
