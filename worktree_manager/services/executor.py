"""Timeout-guarded execution of slow external commands."""

import os
import shutil
import signal
import subprocess
import tempfile
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from worktree_manager.constants import (
    COMMAND_NOT_FOUND_EXIT_CODE,
    KILLED_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
)
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)

# Native timeout utilities, in order of preference (gtimeout = macOS coreutils)
NATIVE_TIMEOUT_COMMANDS = ("timeout", "gtimeout")


@dataclass
class ExecutionResult:
    """Outcome of a command run under a deadline."""

    exit_status: int
    stdout: str = ""
    stderr: str = ""
    strategy: str = "poll"  # "native" or "poll"

    @property
    def timed_out(self) -> bool:
        return self.exit_status == TIMEOUT_EXIT_CODE

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0

    @property
    def error_output(self) -> str:
        """Best available error text, stderr first."""
        return (self.stderr or self.stdout).strip()


class TimeoutExecutor:
    """Run a single external command under a wall-clock deadline.

    Uses the host's ``timeout``/``gtimeout`` when available, otherwise spawns
    the command, polls it at a fixed interval and escalates from SIGTERM to
    SIGKILL when the deadline passes. Either way a timeout is reported as
    exit status 124. Nothing is retried here; callers decide what to do.
    """

    def __init__(
        self,
        poll_interval: float = 0.1,
        grace_period: float = 1.0,
        prefer_native: bool = True,
    ):
        """Initialize the executor.

        Args:
            poll_interval: Seconds between completion checks in the polling fallback
            grace_period: Seconds between the graceful and the forceful kill
            prefer_native: Use a native timeout utility when one is on PATH
        """
        self.poll_interval = poll_interval
        self.grace_period = grace_period
        self.prefer_native = prefer_native
        self._native_command: Optional[str] = None
        self._looked_up = False

    @property
    def native_command(self) -> Optional[str]:
        """Path to the native timeout utility, looked up once."""
        if not self._looked_up:
            self._looked_up = True
            if self.prefer_native:
                for candidate in NATIVE_TIMEOUT_COMMANDS:
                    found = shutil.which(candidate)
                    if found:
                        self._native_command = found
                        break
            logger.debug(f"Native timeout utility: {self._native_command or 'none (polling)'}")
        return self._native_command

    def run_with_timeout(
        self, duration: float, command: Sequence[str], cwd: str
    ) -> ExecutionResult:
        """Run a command, killing it if it exceeds the deadline.

        Args:
            duration: Deadline in seconds
            command: Command and arguments
            cwd: Working directory for the command (always explicit)

        Returns:
            ExecutionResult; exit_status is 124 on timeout, 127 if the command
            could not be started
        """
        logger.debug(f"Running with {duration}s timeout in {cwd}: {' '.join(command)}")
        if self.native_command:
            return self._run_native(duration, command, cwd)
        return self._run_polling(duration, command, cwd)

    def _run_native(self, duration: float, command: Sequence[str], cwd: str) -> ExecutionResult:
        """Delegate the deadline to timeout(1)."""
        wrapped = [
            self.native_command,
            # Short option and bare seconds: BusyBox timeout has no --kill-after
            "-k",
            _format_seconds(self.grace_period),
            _format_seconds(duration),
            *command,
        ]
        started = time.monotonic()
        try:
            completed = subprocess.run(wrapped, cwd=cwd, capture_output=True, text=True)
        except OSError as e:
            return ExecutionResult(COMMAND_NOT_FOUND_EXIT_CODE, "", str(e), "native")

        exit_status = completed.returncode
        elapsed = time.monotonic() - started
        # SIGKILL after the -k grace period still means the deadline was hit
        if exit_status in (KILLED_EXIT_CODE, -9) and elapsed >= duration:
            exit_status = TIMEOUT_EXIT_CODE
        if exit_status == TIMEOUT_EXIT_CODE:
            logger.warning(f"Command timed out after {duration}s: {' '.join(command)}")
        return ExecutionResult(exit_status, completed.stdout, completed.stderr, "native")

    def _run_polling(self, duration: float, command: Sequence[str], cwd: str) -> ExecutionResult:
        """Spawn, poll, and escalate TERM -> KILL at the deadline."""
        # Spool output to files so a chatty child can't block on a full pipe
        with tempfile.TemporaryFile(mode="w+") as out, tempfile.TemporaryFile(mode="w+") as err:
            try:
                process = subprocess.Popen(
                    list(command), cwd=cwd, stdout=out, stderr=err, text=True, start_new_session=True
                )
            except OSError as e:
                return ExecutionResult(COMMAND_NOT_FOUND_EXIT_CODE, "", str(e), "poll")

            deadline = time.monotonic() + duration
            timed_out = False
            while process.poll() is None:
                if time.monotonic() >= deadline:
                    timed_out = True
                    self._terminate(process)
                    break
                time.sleep(self.poll_interval)

            out.seek(0)
            err.seek(0)
            stdout, stderr = out.read(), err.read()

        if timed_out:
            logger.warning(f"Command timed out after {duration}s: {' '.join(command)}")
            return ExecutionResult(TIMEOUT_EXIT_CODE, stdout, stderr, "poll")
        return ExecutionResult(process.returncode, stdout, stderr, "poll")

    def _terminate(self, process: subprocess.Popen) -> None:
        """Ask politely, then insist. Signals go to the whole process group,
        so helpers such as the ssh behind a git push die with the command."""
        _signal_group(process, signal.SIGTERM)
        try:
            process.wait(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            logger.debug(f"Process {process.pid} ignored SIGTERM, sending SIGKILL")
            _signal_group(process, signal.SIGKILL)
            process.wait()


def _signal_group(process: subprocess.Popen, sig: int) -> None:
    """Signal the session started for the command; the group may already be gone."""
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass


def _format_seconds(value: float) -> str:
    """Render seconds for timeout(1), which accepts decimals."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"
