"""Tests for DisplayService output"""
import pytest

from worktree_manager.models.worktree import WorktreeStatus
from worktree_manager.services.remediation import RemediationReporter


class TestPrefixes:
    def test_steps_and_successes_go_to_stdout(self, display):
        display.log_step("Removing worktree")
        display.log_ok("Done")
        assert "▸ Removing worktree" in display.stdout.getvalue()
        assert "+ Done" in display.stdout.getvalue()
        assert display.stderr.getvalue() == ""

    def test_warnings_and_failures_go_to_stderr(self, display):
        display.log_warn("Careful")
        display.log_fail("Broken")
        assert "~ Careful" in display.stderr.getvalue()
        assert "x Broken" in display.stderr.getvalue()
        assert display.stdout.getvalue() == ""

    def test_markup_in_messages_is_not_interpreted(self, display):
        display.log_step("branch [bold]x[/bold]")
        assert "branch [bold]x[/bold]" in display.stdout.getvalue()


class TestCards:
    def test_card_layout(self, display):
        display.card("CLEANUP", ["Worktree  /abs/trees/x"], gauge_state="LANDED")
        lines = display.stdout.getvalue().splitlines()
        assert lines[1] == "  CLEANUP"
        assert lines[2].strip() == "━" * 36
        assert "  Worktree  /abs/trees/x" in lines
        assert "  ██████████  LANDED" in lines
        assert lines[-1].strip() == "━" * 36

    def test_unknown_gauge_state(self, display):
        with pytest.raises(ValueError):
            display.gauge("CRUISING")

    def test_report_printed_verbatim(self, display):
        report = RemediationReporter().worktree_missing("/abs/trees/[x]")
        display.report(report)
        assert report.render() in display.stdout.getvalue()


class TestWorktreeViews:
    def test_table_marks_missing_directories(self, display):
        statuses = [
            WorktreeStatus(path="/abs/project", exists=True, is_valid_worktree=True, branch="main"),
            WorktreeStatus(path="/abs/trees/gone", branch="feature/gone"),
        ]
        display.worktree_table(statuses)
        output = display.stdout.getvalue()
        assert "/abs/trees/gone" in output
        assert "?" in output

    def test_card_for_missing_directory(self, display):
        display.worktree_card(WorktreeStatus(path="/abs/trees/gone"))
        assert "Directory not found" in display.output()

    def test_card_for_dirty_worktree(self, display):
        status = WorktreeStatus(
            path="/abs/trees/x",
            exists=True,
            is_valid_worktree=True,
            branch="feature/x",
            base_branch="develop",
            changed_files=[f"f{i}.txt" for i in range(7)],
            unmerged_count=2,
        )
        display.worktree_card(status)
        output = display.output()
        assert "Uncommitted changes: 7 file(s)" in output
        assert "... and 2 more" in output
        assert "Unmerged commits: 2 (vs develop)" in output
        assert "IN FLIGHT" in output
