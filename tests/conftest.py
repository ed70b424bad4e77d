"""Pytest fixtures for worktree-manager tests"""
import io
import os
import tempfile
from pathlib import Path

import git
import pytest
from rich.console import Console

from worktree_manager.services.display_service import DisplayService

WORKTREE_NAME = "PROJ-123-auth"
WORKTREE_BRANCH = "feature/PROJ-123-auth"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep the caller's environment from leaking into timeouts and handle checks."""
    monkeypatch.delenv("WORKTREE_REMOVE_TIMEOUT", raising=False)
    monkeypatch.delenv("NETWORK_TIMEOUT", raising=False)
    monkeypatch.delenv("NO_COLOR", raising=False)
    # lsof scans are opted into by the tests that need them
    monkeypatch.setenv("WORKTREE_HANDLE_CHECK", "0")
    monkeypatch.setenv("COLUMNS", "200")


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        # Resolve symlinks (/tmp -> /private/tmp) so paths compare equal to git's
        yield Path(tmpdir).resolve()


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository with main and develop branches."""
    repo_path = temp_dir / "project"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    test_file = repo_path / "README.md"
    test_file.write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    repo.git.branch("-M", "main")
    repo.git.branch("develop")

    yield repo

    repo.close()


@pytest.fixture
def project_root(git_repo):
    """Absolute path of the main worktree."""
    return git_repo.working_dir


@pytest.fixture
def worktree(git_repo, project_root):
    """A clean, merged worktree at trees/PROJ-123-auth on feature/PROJ-123-auth."""
    path = os.path.join(project_root, "trees", WORKTREE_NAME)
    git_repo.git.worktree("add", "-b", WORKTREE_BRANCH, path, "develop")
    return path


@pytest.fixture
def origin(git_repo, temp_dir, worktree):
    """A bare repository registered as origin with every branch pushed."""
    bare_path = temp_dir / "origin.git"
    bare = git.Repo.init(bare_path, bare=True)
    git_repo.create_remote("origin", str(bare_path))
    git_repo.git.push("origin", "main", "develop", WORKTREE_BRANCH)
    yield bare
    bare.close()


@pytest.fixture
def commit_in(git_repo):
    """Commit a new file inside a worktree; returns the commit's short sha."""
    def _commit(worktree_path, filename="work.txt", message="Add work"):
        Path(worktree_path, filename).write_text(f"{message}\n")
        repo = git.Repo(worktree_path)
        try:
            repo.git.add(filename)
            repo.git.commit("-m", message)
            return repo.head.commit.hexsha[:7]
        finally:
            repo.close()
    return _commit


@pytest.fixture
def display():
    """A DisplayService writing to in-memory buffers.

    Read everything with display.output().
    """
    out, err = io.StringIO(), io.StringIO()
    service = DisplayService(
        console=Console(file=out, soft_wrap=True, width=200),
        err_console=Console(file=err, soft_wrap=True, width=200),
    )
    service.output = lambda: out.getvalue() + err.getvalue()
    service.stdout = out
    service.stderr = err
    return service
