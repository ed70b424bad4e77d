"""Tests for the worktree-list, worktree-status and worktree-create commands"""
import json
import os
import shutil
from pathlib import Path

import pytest

from worktree_manager.cli.args import parse_cleanup_args
from worktree_manager.cli.main import cleanup_main, create_main, list_main, status_main
from worktree_manager.constants import PROTECTED_BRANCHES
from worktree_manager.exceptions import UsageError


def run(capsys, main, *argv):
    code = main([str(arg) for arg in argv])
    captured = capsys.readouterr()
    return code, captured.out, captured.err


class TestArgs:
    def test_cleanup_defaults(self):
        args = parse_cleanup_args(["trees/x"])
        assert args.worktree_path == "trees/x"
        assert not args.keep_branch and not args.delete_branch
        assert args.timeout is None
        assert args.network_timeout is None
        assert args.protected == list(PROTECTED_BRANCHES)
        assert args.remote == "origin"

    def test_unknown_option_raises_usage_error(self):
        with pytest.raises(UsageError):
            parse_cleanup_args(["trees/x", "--frobnicate"])

    def test_version_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_cleanup_args(["--version"])
        assert exc_info.value.code == 0
        assert "worktree-manager" in capsys.readouterr().out

    def test_usage_error_hint(self, capsys):
        code, _, err = run(capsys, cleanup_main, "--keep-branch", "--delete-branch", "trees/x")
        assert code == 1
        assert "Run 'worktree-cleanup --help' for usage" in err


class TestListCommand:
    def test_json(self, capsys, monkeypatch, project_root, worktree):
        monkeypatch.chdir(project_root)
        code, out, _ = run(capsys, list_main, "--json")
        assert code == 0
        data = json.loads(out)
        assert [entry["path"] for entry in data] == [project_root, worktree]
        assert data[0]["branch"] == "main"
        assert data[1]["branch"] == "feature/PROJ-123-auth"
        assert data[1]["is_valid_worktree"] is True

    def test_table(self, capsys, monkeypatch, worktree):
        monkeypatch.chdir(worktree)
        code, out, _ = run(capsys, list_main)
        assert code == 0
        assert worktree in out
        assert "feature/PROJ-123-auth" in out
        assert "2 worktree(s)" in out

    def test_verbose_cards(self, capsys, monkeypatch, project_root, worktree):
        Path(worktree, "scratch.txt").write_text("wip\n")
        monkeypatch.chdir(project_root)
        code, out, err = run(capsys, list_main, "--verbose")
        assert code == 0
        assert f"Path:   {worktree}" in out
        assert "Uncommitted changes: 1 file(s)" in err

    def test_missing_directory_listed(self, capsys, monkeypatch, project_root, worktree):
        shutil.rmtree(worktree)
        monkeypatch.chdir(project_root)
        code, out, _ = run(capsys, list_main, "--json")
        assert code == 0
        missing = json.loads(out)[1]
        assert missing["path"] == worktree
        assert missing["exists"] is False
        assert missing["branch"] == "feature/PROJ-123-auth"

    def test_outside_repository(self, capsys, monkeypatch, temp_dir):
        monkeypatch.chdir(temp_dir)
        code, _, err = run(capsys, list_main)
        assert code == 1
        assert "Not in a git repository" in err


class TestStatusCommand:
    def test_json(self, capsys, worktree):
        Path(worktree, "package.json").write_text("{}\n")
        os.makedirs(os.path.join(worktree, "node_modules"))
        code, out, _ = run(capsys, status_main, worktree, "--json")
        assert code == 0
        data = json.loads(out)
        assert data["path"] == worktree
        assert data["branch"] == "feature/PROJ-123-auth"
        assert data["base_branch"] == "develop"
        assert data["has_changes"] is True
        assert data["dependencies"] == {"type": "nodejs", "installed": "true"}

    def test_ready_for_cleanup_hint(self, capsys, worktree):
        code, out, _ = run(capsys, status_main, worktree)
        assert code == 0
        assert f"Ready for cleanup: worktree-cleanup {worktree} --delete-branch" in out

    def test_no_hint_when_unmerged(self, capsys, worktree, commit_in):
        commit_in(worktree)
        code, out, err = run(capsys, status_main, worktree)
        assert code == 0
        assert "Unmerged commits: 1 (vs develop)" in err
        assert "Ready for cleanup" not in out

    def test_relative_path(self, capsys, monkeypatch, project_root, worktree):
        monkeypatch.chdir(project_root)
        code, out, _ = run(capsys, status_main, "trees/PROJ-123-auth", "--json")
        assert code == 0
        assert json.loads(out)["path"] == worktree

    def test_missing_path(self, capsys, monkeypatch, project_root):
        monkeypatch.chdir(project_root)
        code, _, err = run(capsys, status_main, "trees/nope")
        assert code == 1
        assert "Directory not found" in err

    def test_requires_path(self, capsys):
        code, _, _ = run(capsys, status_main)
        assert code == 1


class TestCreateCommand:
    def test_creates_worktree(self, capsys, monkeypatch, project_root):
        monkeypatch.chdir(project_root)
        code, out, _ = run(capsys, create_main, "PROJ-456", "Add OAuth Login")
        path = os.path.join(project_root, "trees", "PROJ-456-add-oauth-login")
        assert code == 0
        assert os.path.isdir(path)
        assert "WORKTREE CREATED" in out
        assert "feature/PROJ-456-add-oauth-login" in out
        assert f"Next: cd {path}" in out

    def test_repeat_fails(self, capsys, monkeypatch, project_root):
        monkeypatch.chdir(project_root)
        assert run(capsys, create_main, "PROJ-456", "Add OAuth Login")[0] == 0
        code, _, err = run(capsys, create_main, "PROJ-456", "Add OAuth Login")
        assert code == 1
        assert "already exists" in err

    def test_warns_about_related_commits(self, capsys, monkeypatch, git_repo, project_root):
        git_repo.git.checkout("develop")
        git_repo.git.commit("--allow-empty", "-m", "PROJ-456 groundwork")
        git_repo.git.checkout("main")
        monkeypatch.chdir(project_root)
        code, _, err = run(capsys, create_main, "PROJ-456", "Add OAuth Login")
        assert code == 0
        assert "develop already has commits mentioning PROJ-456" in err
        assert "PROJ-456 groundwork" in err

    def test_created_worktree_can_be_cleaned_up(self, capsys, monkeypatch, project_root):
        monkeypatch.chdir(project_root)
        assert run(capsys, create_main, "PROJ-456", "Add OAuth Login")[0] == 0
        code, _, _ = run(capsys, cleanup_main, "trees/PROJ-456-add-oauth-login", "--delete-branch")
        assert code == 0
        assert not os.path.exists(os.path.join(project_root, "trees", "PROJ-456-add-oauth-login"))

    def test_missing_description(self, capsys, monkeypatch, project_root):
        monkeypatch.chdir(project_root)
        code, _, _ = run(capsys, create_main, "PROJ-456")
        assert code == 1
