"""Worktree registry service for worktree-manager."""

import git
import os
from typing import Any, Dict, Iterator, List, Optional

from worktree_manager.constants import DETACHED_BRANCH
from worktree_manager.exceptions import (
    GitOperationError,
    NotARepositoryError,
    WorktreeNotFoundError,
)
from worktree_manager.logging_config import get_logger
from worktree_manager.models.worktree import Worktree
from worktree_manager.services.git.commands import git_executable, to_operation_error

logger = get_logger(__name__)


def same_path(left: str, right: str) -> bool:
    """Compare two paths after resolving symlinks (e.g. /tmp vs /private/tmp)."""
    return os.path.realpath(left) == os.path.realpath(right)


def parse_worktree_porcelain(output: str) -> Iterator[Worktree]:
    """Parse `git worktree list --porcelain` output into Worktree records.

    Format:
        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name   (or "detached", or "bare")
        locked [reason]                 (optional)
        prunable [reason]               (optional)
        (blank line between worktrees)

    The first record is always the main worktree.
    """
    current: Dict[str, Any] = {}
    is_first = True

    def build(entry: Dict[str, Any], is_main: bool) -> Worktree:
        path = entry["path"]
        return Worktree(
            path=path,
            branch=entry.get("branch") or DETACHED_BRANCH,
            head=entry.get("HEAD", ""),
            is_main=is_main,
            is_bare=entry.get("bare", False),
            locked=entry.get("locked", False),
            lock_reason=entry.get("lock_reason"),
            prunable=entry.get("prunable", False),
            exists=os.path.isdir(path),
        )

    for raw_line in output.split("\n"):
        line = raw_line.rstrip("\r")

        if not line.strip():
            # Empty line marks end of worktree entry
            if current.get("path"):
                yield build(current, is_first)
                is_first = False
            current = {}
            continue

        key, _, value = line.partition(" ")
        if key == "worktree":
            current["path"] = value
        elif key == "HEAD":
            current["HEAD"] = value
        elif key == "branch":
            # Extract branch name from "branch refs/heads/branch-name"
            if value.startswith("refs/heads/"):
                current["branch"] = value[len("refs/heads/"):]
            else:
                current["branch"] = value
        elif key == "detached":
            current["branch"] = DETACHED_BRANCH
        elif key == "bare":
            current["bare"] = True
        elif key == "locked":
            current["locked"] = True
            current["lock_reason"] = value
        elif key == "prunable":
            current["prunable"] = True

    # Handle last entry if no trailing blank line
    if current.get("path"):
        yield build(current, is_first)


def parse_status_porcelain(status: str) -> List[str]:
    """Extract file paths from `git status --porcelain` output.

    Format: XY filename (X=index, Y=worktree), e.g.
         M file.txt (modified in worktree)
        A  file.txt (staged)
        ?? file.txt (untracked)
        R  old.txt -> new.txt (renamed)
    """
    files = []
    for line in status.split("\n"):
        if len(line) < 4 or not line.strip():
            continue
        files.append(line[3:])
    return files


class WorktreeService:
    """Service for reading and mutating the git worktree registry.

    Nothing is cached: worktrees can be added, removed or locked by other
    processes at any time, so every call re-reads git's state.
    """

    def __init__(self, repo_path: str):
        """Initialize the worktree service.

        Args:
            repo_path: Path to the main worktree (project root) of the repository
        """
        self.repo_path = repo_path

    @classmethod
    def discover(cls, path: str) -> "WorktreeService":
        """Find the repository containing a path and root the service at its main worktree.

        Args:
            path: Any path inside the repository or one of its worktrees. If the
                path no longer exists, its nearest existing parent is used.

        Raises:
            NotARepositoryError: If the path is not inside a git repository
        """
        candidate = os.path.abspath(path)
        while not os.path.exists(candidate):
            parent = os.path.dirname(candidate)
            if parent == candidate:
                raise NotARepositoryError(path)
            candidate = parent

        try:
            repo = git.Repo(candidate, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            raise NotARepositoryError(path)

        try:
            start = repo.working_tree_dir or repo.git_dir
            service = cls(start)
            main = service.main_worktree()
        finally:
            repo.close()
        logger.debug(f"Discovered project root {main.path} from {path}")
        return cls(main.path)

    @property
    def project_root(self) -> str:
        return self.repo_path

    def _get_repo(self) -> git.Repo:
        """Get a fresh git.Repo instance.

        Returns:
            git.Repo: A fresh repository instance
        """
        try:
            return git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            raise NotARepositoryError(self.repo_path)

    def list_worktrees(self) -> Iterator[Worktree]:
        """Enumerate all registered worktrees.

        A generator: git is queried when iteration starts, and calling this
        again re-reads current state. Detached worktrees and worktrees whose
        directory has been deleted are included.

        Raises:
            NotARepositoryError: If repo_path is not a git repository
            GitOperationError: If `git worktree list` fails
        """
        repo = self._get_repo()
        try:
            output = repo.git.worktree("list", "--porcelain")
        except git.exc.GitCommandError as e:
            raise to_operation_error("worktree list", self.repo_path, e)
        finally:
            repo.close()

        count = 0
        for worktree in parse_worktree_porcelain(output):
            count += 1
            logger.debug(f"  {worktree}")
            yield worktree
        logger.debug(f"Found {count} worktrees")

    def main_worktree(self) -> Worktree:
        """Return the main worktree (the first registry entry)."""
        for worktree in self.list_worktrees():
            return worktree
        raise GitOperationError("worktree list", self.repo_path, "No worktrees registered")

    def find_worktree(self, path: str) -> Worktree:
        """Look up a registered worktree by path.

        Raises:
            WorktreeNotFoundError: If no registered worktree has that path
        """
        target = os.path.abspath(path)
        for worktree in self.list_worktrees():
            if same_path(worktree.path, target):
                return worktree
        raise WorktreeNotFoundError(path)

    def changed_files(self, worktree_path: str) -> List[str]:
        """List files that differ from the worktree's last commit.

        Covers modified, staged, deleted and untracked-but-not-ignored files.

        Raises:
            GitOperationError: If `git status` fails in the worktree
        """
        repo = self._get_repo()
        try:
            # Run git status in the worktree directory via -C, never by chdir
            status = repo.git.execute([git_executable(), "-C", worktree_path, "status", "--porcelain"])
        except git.exc.GitCommandError as e:
            raise to_operation_error("status", worktree_path, e)
        finally:
            repo.close()
        return parse_status_porcelain(status)

    def common_dir(self) -> str:
        """Absolute path of the shared git directory (usually <root>/.git)."""
        repo = self._get_repo()
        try:
            return os.path.abspath(repo.common_dir)
        finally:
            repo.close()

    def admin_dir(self, worktree: Worktree) -> str:
        """Locate git's per-worktree metadata directory.

        Each directory under <common dir>/worktrees/ has a ``gitdir`` file
        pointing back at its worktree's ``.git`` file; the registration name
        can differ from the worktree's basename when names collide.
        """
        worktrees_dir = os.path.join(self.common_dir(), "worktrees")
        if os.path.isdir(worktrees_dir):
            for name in sorted(os.listdir(worktrees_dir)):
                gitdir_file = os.path.join(worktrees_dir, name, "gitdir")
                try:
                    with open(gitdir_file) as f:
                        pointer = f.read().strip()
                except OSError:
                    continue
                if pointer and same_path(os.path.dirname(pointer), worktree.path):
                    return os.path.join(worktrees_dir, name)
        return os.path.join(worktrees_dir, worktree.name)

    def lock_file(self, worktree: Worktree) -> str:
        """Path of the lock marker git writes for `git worktree lock`."""
        return os.path.join(self.admin_dir(worktree), "locked")

    def removal_command(self, worktree: Worktree, bypass_lock: bool = False) -> List[str]:
        """Build the command that removes a worktree.

        Only called once the safety gates have passed, so a single --force
        is always given (ignored build output must not stop removal). git
        refuses locked worktrees unless --force is given twice. A worktree
        whose directory is already gone only needs its metadata pruned.
        """
        if not os.path.isdir(worktree.path):
            return [git_executable(), "worktree", "prune"]
        command = [git_executable(), "worktree", "remove", "--force"]
        if bypass_lock:
            command.append("--force")
        command.append(worktree.path)
        return command

    def unlock_worktree(self, worktree: Worktree) -> None:
        """Drop a worktree's lock. git never prunes a locked entry.

        Raises:
            GitOperationError: If `git worktree unlock` fails
        """
        repo = self._get_repo()
        try:
            repo.git.worktree("unlock", worktree.path)
            logger.info(f"Unlocked worktree {worktree.path}")
        except git.exc.GitCommandError as e:
            raise to_operation_error("worktree unlock", worktree.path, e)
        finally:
            repo.close()

    def is_registered(self, path: str) -> bool:
        try:
            self.find_worktree(path)
        except WorktreeNotFoundError:
            return False
        return True

    def prune_worktrees(self) -> None:
        """Prune stale worktree metadata.

        Raises:
            GitOperationError: If `git worktree prune` fails
        """
        repo = self._get_repo()
        try:
            repo.git.worktree("prune")
            logger.info("Pruned stale worktree metadata")
        except git.exc.GitCommandError as e:
            raise to_operation_error("worktree prune", self.repo_path, e)
        finally:
            repo.close()

    def add_worktree(self, path: str, branch: str, base_branch: str) -> Worktree:
        """Create a worktree at path on a new branch started from base_branch.

        Raises:
            GitOperationError: If `git worktree add` fails
        """
        repo = self._get_repo()
        try:
            repo.git.worktree("add", "-b", branch, path, base_branch)
            logger.info(f"Created worktree at {path} on {branch} from {base_branch}")
        except git.exc.GitCommandError as e:
            raise to_operation_error("worktree add", path, e)
        finally:
            repo.close()
        return self.find_worktree(path)
