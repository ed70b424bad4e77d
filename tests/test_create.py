"""Tests for worktree creation"""
import os

import git
import pytest

from worktree_manager.core.create import WorktreeCreator, normalize_description
from worktree_manager.exceptions import ConfigurationError
from worktree_manager.services.git.branches import BranchService
from worktree_manager.services.git.worktrees import WorktreeService


@pytest.fixture
def creator(project_root):
    return WorktreeCreator(WorktreeService(project_root))


def commit_on_develop(git_repo, message):
    """Add an empty commit to develop without leaving main checked out elsewhere."""
    git_repo.git.checkout("develop")
    try:
        git_repo.git.commit("--allow-empty", "-m", message)
    finally:
        git_repo.git.checkout("main")


class TestNormalizeDescription:
    @pytest.mark.parametrize("description,expected", [
        ("Add OAuth Login", "add-oauth-login"),
        ("fix: crash on startup!", "fix-crash-on-startup"),
        ("  Trim me  ", "trim-me"),
        ("already-fine-123", "already-fine-123"),
        ("über café", "ber-caf"),
    ])
    def test_normalization(self, description, expected):
        assert normalize_description(description) == expected


class TestPlan:
    def test_names(self, creator, project_root):
        name, path, branch = creator.plan("PROJ-456", "Add OAuth Login")
        assert name == "PROJ-456-add-oauth-login"
        assert path == os.path.join(project_root, "trees", "PROJ-456-add-oauth-login")
        assert branch == "feature/PROJ-456-add-oauth-login"

    def test_empty_task_id(self, creator):
        with pytest.raises(ConfigurationError):
            creator.plan("  ", "Add OAuth Login")

    def test_description_without_usable_characters(self, creator):
        with pytest.raises(ConfigurationError):
            creator.plan("PROJ-456", "!!!")


class TestCreate:
    def test_creates_worktree_from_develop(self, creator, project_root):
        created = creator.create("PROJ-456", "Add OAuth Login")

        assert created.base_branch == "develop"
        assert created.branch == "feature/PROJ-456-add-oauth-login"
        assert created.worktree.path == os.path.join(project_root, "trees", "PROJ-456-add-oauth-login")
        assert os.path.isdir(created.worktree.path)
        assert created.related_commits == []
        assert BranchService(project_root).branch_exists(created.branch)

    def test_registered_afterwards(self, creator, project_root):
        created = creator.create("PROJ-456", "Add OAuth Login")
        paths = [wt.path for wt in WorktreeService(project_root).list_worktrees()]
        assert created.worktree.path in paths

    def test_explicit_base_branch(self, creator, git_repo):
        git_repo.git.branch("release")
        created = creator.create("PROJ-456", "Hotfix", base_branch="release")
        assert created.base_branch == "release"

    def test_falls_back_to_main(self, git_repo, creator):
        git_repo.git.branch("-D", "develop")
        assert creator.create("PROJ-456", "Add OAuth Login").base_branch == "main"

    def test_missing_base_branch(self, creator):
        with pytest.raises(ConfigurationError, match="does not exist"):
            creator.create("PROJ-456", "Add OAuth Login", base_branch="nope")

    def test_no_candidate_base_branch(self, temp_dir):
        path = temp_dir / "trunk-only"
        path.mkdir()
        repo = git.Repo.init(path)
        repo.config_writer().set_value("user", "name", "Test User").release()
        repo.config_writer().set_value("user", "email", "test@example.com").release()
        repo.git.commit("--allow-empty", "-m", "Initial commit")
        repo.git.branch("-M", "trunk")
        repo.close()

        creator = WorktreeCreator(WorktreeService(str(path)))
        with pytest.raises(ConfigurationError, match="No base branch found"):
            creator.create("PROJ-456", "Add OAuth Login")

    def test_existing_directory(self, creator, project_root):
        os.makedirs(os.path.join(project_root, "trees", "PROJ-456-add-oauth-login"))
        with pytest.raises(ConfigurationError, match="already exists"):
            creator.create("PROJ-456", "Add OAuth Login")

    def test_existing_branch(self, creator, git_repo):
        git_repo.git.branch("feature/PROJ-456-add-oauth-login")
        with pytest.raises(ConfigurationError, match="Branch already exists"):
            creator.create("PROJ-456", "Add OAuth Login")

    def test_related_commits_on_base(self, creator, git_repo):
        commit_on_develop(git_repo, "PROJ-456 groundwork for OAuth")
        created = creator.create("PROJ-456", "Add OAuth Login")
        assert len(created.related_commits) == 1
        assert created.related_commits[0].endswith("PROJ-456 groundwork for OAuth")
