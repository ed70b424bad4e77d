"""Display service: cards, gauges, log prefixes and tables.

Color is left to rich, which already honors NO_COLOR and TERM=dumb.
Warnings and failures go to stderr; everything else to stdout.
"""
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from worktree_manager.constants import (
    FAIL_PREFIX,
    GAUGE_STATES,
    HEAVY_RULE,
    OK_PREFIX,
    STEP_PREFIX,
    WARN_PREFIX,
)
from worktree_manager.logging_config import get_logger
from worktree_manager.models.worktree import WorktreeStatus
from worktree_manager.services.remediation import RemediationReport

logger = get_logger(__name__)


class DisplayService:
    def __init__(self, console: Optional[Console] = None, err_console: Optional[Console] = None):
        # soft_wrap keeps long paths and report lines on one line
        self.console = console or Console(soft_wrap=True)
        self.err_console = err_console or Console(stderr=True, soft_wrap=True)

    # --- Log prefixes ---

    def _prefixed(self, console: Console, prefix: tuple, message: str) -> None:
        color, symbol = prefix
        console.print(f"  [{color}]{symbol}[/{color}] {escape(message)}", highlight=False)

    def log_step(self, message: str) -> None:
        self._prefixed(self.console, STEP_PREFIX, message)

    def log_ok(self, message: str) -> None:
        self._prefixed(self.console, OK_PREFIX, message)

    def log_warn(self, message: str) -> None:
        self._prefixed(self.err_console, WARN_PREFIX, message)

    def log_fail(self, message: str) -> None:
        self._prefixed(self.err_console, FAIL_PREFIX, message)

    def line(self, text: str = "") -> None:
        """Plain line, no markup."""
        self.console.out(text, highlight=False)

    # --- Cards ---

    def card_header(self, title: str) -> None:
        self.line(f"  {title}")
        self.line(f"  {HEAVY_RULE}")

    def card_footer(self) -> None:
        self.line(f"  {HEAVY_RULE}")

    def gauge(self, state: str) -> None:
        """Print a 10-block gauge bar for a state."""
        if state not in GAUGE_STATES:
            raise ValueError(f"unknown gauge state '{state}'")
        bar, label = GAUGE_STATES[state]
        self.line(f"  {bar}  {label}")

    def card(self, title: str, rows: Sequence[str], gauge_state: Optional[str] = None) -> None:
        """Header, indented rows, optional gauge, footer."""
        self.line()
        self.card_header(title)
        for row in rows:
            self.line(f"  {row}")
        if gauge_state:
            self.line()
            self.gauge(gauge_state)
        self.card_footer()

    # --- Reports ---

    def report(self, report: RemediationReport) -> None:
        """Print a remediation report verbatim to stdout."""
        self.line()
        self.console.out(report.render(), highlight=False)

    # --- Worktree listings ---

    def worktree_table(self, statuses: List[WorktreeStatus]) -> None:
        """Compact table: path, branch, changes, unmerged."""
        table = Table()
        table.add_column("Path", overflow="fold")
        table.add_column("Branch")
        table.add_column("Changes")
        table.add_column("Unmerged")

        for status in statuses:
            if not status.exists:
                changes, unmerged = "[red]?[/red]", "[red]?[/red]"
            else:
                changes = "[yellow]Y[/yellow]" if status.has_changes else "N"
                unmerged = f"[blue]{status.unmerged_count}[/blue]" if status.unmerged_count else "0"
            table.add_row(escape(status.path), escape(status.branch or "-"), changes, unmerged)

        self.console.print(table)

    def worktree_card(self, status: WorktreeStatus, max_files: int = 5) -> None:
        """Detailed card for one worktree, used by list --verbose and status."""
        self.line()
        self.card_header(status.branch or status.path)
        self.line(f"  Path:   {status.path}")
        self.line(f"  HEAD:   {status.head}")
        if status.base_branch:
            self.line(f"  Base:   {status.base_branch}")

        if not status.exists:
            self.log_fail("Directory not found")
            self.card_footer()
            return
        if not status.is_valid_worktree:
            self.log_fail("Not a valid git worktree")
            self.card_footer()
            return

        if status.has_changes:
            self.log_warn(f"Uncommitted changes: {status.change_count} file(s)")
            for name in status.changed_files[:max_files]:
                self.line(f"    {name}")
            if status.change_count > max_files:
                self.line(f"    ... and {status.change_count - max_files} more")
        else:
            self.log_ok("No uncommitted changes")

        if status.upstream:
            if status.ahead:
                self.log_step(f"Ahead of {status.upstream}: {status.ahead} commit(s)")
            if status.behind:
                self.log_warn(f"Behind {status.upstream}: {status.behind} commit(s)")
            if not status.ahead and not status.behind:
                self.log_ok(f"Up to date with {status.upstream}")

        if status.unmerged_count:
            self.log_warn(f"Unmerged commits: {status.unmerged_count} (vs {status.base_branch})")
        elif status.base_branch:
            self.log_ok(f"All commits merged to {status.base_branch}")

        self.line(f"  Last commit: {status.last_commit}")
        self.line(f"  Commit date: {status.last_commit_date}")
        if status.last_commit_author:
            self.line(f"  Author:      {status.last_commit_author}")

        if status.dependency_type != "none":
            self.line(f"  Dependencies: {status.dependency_type}")
            if status.dependencies_installed == "true":
                self.log_ok("Dependencies installed")
            elif status.dependencies_installed == "false":
                self.log_warn("Dependencies not installed")
            else:
                self.log_step("Dependency status unknown")

        self.line()
        self.gauge("IN_FLIGHT" if status.warning_count else "LANDED")
        self.card_footer()
