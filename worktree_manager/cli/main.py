"""Command-line entry points for worktree-manager."""

import json
import os
import shlex
import sys

from rich.markup import escape

from worktree_manager.cli.args import (
    parse_cleanup_args,
    parse_create_args,
    parse_list_args,
    parse_status_args,
)
from worktree_manager.config import CleanupConfig, TimeoutPolicy
from worktree_manager.constants import ExitCode
from worktree_manager.core.cleanup import CleanupOrchestrator
from worktree_manager.core.create import WorktreeCreator
from worktree_manager.exceptions import UsageError, WorktreeManagerError
from worktree_manager.logging_config import setup_logging
from worktree_manager.models.worktree import WorktreeStatus
from worktree_manager.services.display_service import DisplayService
from worktree_manager.services.git.status import WorktreeStatusService
from worktree_manager.services.git.worktrees import WorktreeService


def _run(command, argv, parse, body) -> int:
    """Shared error handling for every entry point."""
    display = DisplayService()
    debug = False
    try:
        args = parse(argv)
        debug = args.debug
        log_file = setup_logging(verbose=args.verbose, debug=args.debug, command=command)
        if log_file:
            display.err_console.print(f"[dim]Debug log: {escape(str(log_file))}[/dim]")
        return int(body(args, display))
    except UsageError as e:
        display.log_fail(str(e))
        display.log_warn(f"Run '{command} --help' for usage")
        return ExitCode.ERROR
    except WorktreeManagerError as e:
        display.log_fail(str(e))
        return ExitCode.ERROR
    except KeyboardInterrupt:
        display.err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return ExitCode.ERROR
    except Exception as e:
        display.err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        if debug:
            display.err_console.print_exception()
        return ExitCode.ERROR


# --- worktree-cleanup ---

def _cleanup(args, display: DisplayService) -> int:
    config = CleanupConfig(
        worktree_path=args.worktree_path or "",
        keep_branch=args.keep_branch,
        delete_branch=args.delete_branch,
        force=args.force,
        dry_run=args.dry_run,
        skip_lock_check=args.skip_lock_check,
        timeouts=TimeoutPolicy.resolve(args.timeout, args.network_timeout),
        base_branch=args.base_branch,
        protected_branches=args.protected,
        remote_name=args.remote,
        verbose=args.verbose,
        debug=args.debug,
    )

    if args.debug:
        display.err_console.print("[yellow]Configuration:[/yellow]")
        for key, value in config.to_dict().items():
            display.err_console.print(f"  {key}: {escape(str(value))}", highlight=False)

    result = CleanupOrchestrator(config, display=display).run()
    return result.exit_code


def cleanup_main(argv=None) -> int:
    """worktree-cleanup: safely remove a worktree."""
    return _run("worktree-cleanup", argv, parse_cleanup_args, _cleanup)


# --- worktree-list ---

def _list(args, display: DisplayService) -> int:
    worktree_service = WorktreeService.discover(os.getcwd())
    status_service = WorktreeStatusService(worktree_service)

    statuses = []
    for worktree in worktree_service.list_worktrees():
        if worktree.exists:
            status = status_service.get_worktree_status(worktree.path, args.base_branch)
        else:
            status = WorktreeStatus(path=worktree.path, branch=worktree.branch, head=worktree.head[:12])
        statuses.append(status)

    if args.json:
        display.line(json.dumps([s.to_dict() for s in statuses], indent=2))
    elif args.verbose:
        for status in statuses:
            display.worktree_card(status)
    else:
        display.worktree_table(statuses)
        display.line(f"  {len(statuses)} worktree(s)")
    return ExitCode.SUCCESS


def list_main(argv=None) -> int:
    """worktree-list: every registered worktree with its status."""
    return _run("worktree-list", argv, parse_list_args, _list)


# --- worktree-status ---

def _status(args, display: DisplayService) -> int:
    path = os.path.abspath(args.worktree_path)
    worktree_service = WorktreeService.discover(path if os.path.exists(path) else os.getcwd())
    status = WorktreeStatusService(worktree_service).get_worktree_status(path, args.base_branch)

    if args.json:
        display.line(json.dumps(status.to_dict(), indent=2))
    else:
        display.worktree_card(status)
        if status.ready_for_cleanup:
            display.log_ok(
                f"Ready for cleanup: worktree-cleanup {shlex.quote(status.path)} --delete-branch"
            )

    if not status.exists or not status.is_valid_worktree:
        return ExitCode.ERROR
    return ExitCode.SUCCESS


def status_main(argv=None) -> int:
    """worktree-status: health summary of one worktree."""
    return _run("worktree-status", argv, parse_status_args, _status)


# --- worktree-create ---

def _create(args, display: DisplayService) -> int:
    worktree_service = WorktreeService.discover(os.getcwd())
    creator = WorktreeCreator(worktree_service)
    _, path, branch = creator.plan(args.task_id, args.description)

    display.log_step(f"Creating worktree: {path}")
    display.log_step(f"Branch: {branch}")
    created = creator.create(args.task_id, args.description, args.base_branch)

    if created.related_commits:
        display.log_warn(f"{created.base_branch} already has commits mentioning {args.task_id.strip()}:")
        for line in created.related_commits:
            display.log_warn(f"  {line}")

    display.card(
        "WORKTREE CREATED",
        [
            f"Path    {created.worktree.path}",
            f"Branch  {created.branch}",
            f"Base    {created.base_branch}",
        ],
        gauge_state="TAKING_OFF",
    )
    display.line(f"  Next: cd {shlex.quote(created.worktree.path)}")
    return ExitCode.SUCCESS


def create_main(argv=None) -> int:
    """worktree-create: new worktree on a feature branch."""
    return _run("worktree-create", argv, parse_create_args, _create)


if __name__ == "__main__":
    sys.exit(cleanup_main())
