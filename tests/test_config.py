"""Tests for configuration and timeout resolution"""
import pytest

from worktree_manager.config import CleanupConfig, TimeoutPolicy, parse_timeout
from worktree_manager.constants import BranchDisposition
from worktree_manager.exceptions import InvalidTimeoutError, UsageError


class TestParseTimeout:
    """Test timeout value validation."""

    @pytest.mark.parametrize("value", ["abc", "-5", "0", "5", "9", "", "12.5", " ", "1e3"])
    def test_rejects_invalid_values(self, value):
        """Non-numeric, negative, zero and sub-minimum values are rejected."""
        with pytest.raises(InvalidTimeoutError) as exc_info:
            parse_timeout("--timeout", value)
        assert "Invalid timeout" in str(exc_info.value)
        assert "--timeout" in str(exc_info.value)

    def test_accepts_minimum_boundary(self):
        """10 seconds is the smallest accepted value."""
        assert parse_timeout("--timeout", "10") == 10

    def test_accepts_ints(self):
        assert parse_timeout("removal_timeout", 120) == 120

    def test_message_names_source_and_value(self):
        with pytest.raises(InvalidTimeoutError) as exc_info:
            parse_timeout("WORKTREE_REMOVE_TIMEOUT", "soon")
        assert str(exc_info.value) == (
            "Invalid timeout value for WORKTREE_REMOVE_TIMEOUT: 'soon' (must be a positive integer >= 10)"
        )


class TestTimeoutPolicy:
    """Test flag > environment > default precedence."""

    def test_defaults(self):
        policy = TimeoutPolicy.resolve(environ={})
        assert policy.removal_timeout == 120
        assert policy.network_timeout == 30

    def test_environment_overrides_default(self):
        policy = TimeoutPolicy.resolve(environ={"WORKTREE_REMOVE_TIMEOUT": "300", "NETWORK_TIMEOUT": "45"})
        assert policy.removal_timeout == 300
        assert policy.network_timeout == 45

    def test_flag_overrides_environment(self):
        """--timeout 60 wins over WORKTREE_REMOVE_TIMEOUT=999."""
        policy = TimeoutPolicy.resolve("60", "20", environ={"WORKTREE_REMOVE_TIMEOUT": "999", "NETWORK_TIMEOUT": "999"})
        assert policy.removal_timeout == 60
        assert policy.network_timeout == 20

    def test_timeouts_are_independent(self):
        policy = TimeoutPolicy.resolve("60", environ={"NETWORK_TIMEOUT": "90"})
        assert policy.removal_timeout == 60
        assert policy.network_timeout == 90

    def test_invalid_environment_value(self):
        with pytest.raises(InvalidTimeoutError) as exc_info:
            TimeoutPolicy.resolve(environ={"NETWORK_TIMEOUT": "fast"})
        assert "NETWORK_TIMEOUT" in str(exc_info.value)

    def test_invalid_flag_not_masked_by_valid_environment(self):
        with pytest.raises(InvalidTimeoutError):
            TimeoutPolicy.resolve("5", environ={"WORKTREE_REMOVE_TIMEOUT": "200"})

    def test_direct_construction_validates(self):
        with pytest.raises(InvalidTimeoutError):
            TimeoutPolicy(removal_timeout=3)

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("WORKTREE_REMOVE_TIMEOUT", "240")
        assert TimeoutPolicy.resolve().removal_timeout == 240


class TestCleanupConfig:
    """Test CleanupConfig validation and helpers."""

    def test_requires_worktree_path(self):
        with pytest.raises(UsageError, match="Missing required argument: worktree-path"):
            CleanupConfig(worktree_path="")

    def test_rejects_both_dispositions(self):
        with pytest.raises(UsageError, match="Cannot specify both --keep-branch and --delete-branch"):
            CleanupConfig(worktree_path="trees/x", keep_branch=True, delete_branch=True)

    def test_disposition(self):
        assert CleanupConfig(worktree_path="x").disposition is None
        assert CleanupConfig(worktree_path="x", keep_branch=True).disposition == BranchDisposition.KEEP
        assert CleanupConfig(worktree_path="x", delete_branch=True).disposition == BranchDisposition.DELETE

    def test_disposition_flag(self):
        assert CleanupConfig(worktree_path="x").disposition_flag == ""
        assert CleanupConfig(worktree_path="x", keep_branch=True).disposition_flag == "--keep-branch"
        assert CleanupConfig(worktree_path="x", delete_branch=True).disposition_flag == "--delete-branch"

    def test_protected_branches(self):
        config = CleanupConfig(worktree_path="x")
        assert config.is_protected("develop")
        assert config.is_protected("main")
        assert config.is_protected("master")
        assert not config.is_protected("feature/PROJ-123-auth")
        assert not config.is_protected(None)

    def test_custom_protected_branches(self):
        config = CleanupConfig(worktree_path="x", protected_branches=["release"])
        assert config.is_protected("release")
        assert not config.is_protected("main")

    def test_protected_branches_must_be_list(self):
        with pytest.raises(ValueError):
            CleanupConfig(worktree_path="x", protected_branches="main")

    def test_to_dict_and_get(self):
        config = CleanupConfig(worktree_path="x", timeouts=TimeoutPolicy(60, 20))
        data = config.to_dict()
        assert data["removal_timeout"] == 60
        assert data["network_timeout"] == 20
        assert config.get("remote_name") == "origin"
        assert config.get("missing", "fallback") == "fallback"
