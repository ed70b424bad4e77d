"""Best-effort detection of processes holding files open in a worktree."""

import os
import shutil
from typing import List, Optional

from worktree_manager.constants import ENV_HANDLE_CHECK, HANDLE_CHECK_TIMEOUT
from worktree_manager.logging_config import get_logger
from worktree_manager.models.safety import OpenHandle
from worktree_manager.services.executor import TimeoutExecutor

logger = get_logger(__name__)


def parse_lsof_fields(output: str) -> List[OpenHandle]:
    """Parse `lsof -F pc` output into unique (process, pid) pairs.

    Each process set starts with ``p<pid>`` followed by ``c<command>``;
    file-level lines (``f...``, ``n...``) are ignored.
    """
    handles = set()
    pid: Optional[int] = None
    for line in output.splitlines():
        if not line:
            continue
        tag, value = line[0], line[1:]
        if tag == "p":
            try:
                pid = int(value)
            except ValueError:
                pid = None
        elif tag == "c" and pid is not None:
            handles.add(OpenHandle(process_name=value, pid=pid))
    return sorted(handles, key=lambda h: (h.process_name, h.pid))


class OpenHandleDetector:
    """Lists processes with open files under a directory using lsof.

    The lsof capability is looked up once. When it is missing or the check is
    disabled, detection quietly returns nothing: this is a diagnostic, not a
    gate, and false positives (indexers, editors) are common.
    """

    def __init__(
        self,
        executor: Optional[TimeoutExecutor] = None,
        enabled: Optional[bool] = None,
        lsof_path: Optional[str] = None,
        timeout: int = HANDLE_CHECK_TIMEOUT,
    ):
        """Initialize the detector.

        Args:
            executor: Executor used to run lsof under a deadline
            enabled: Force the check on/off (default: on unless WORKTREE_HANDLE_CHECK=0)
            lsof_path: Explicit lsof binary (default: search PATH)
            timeout: Deadline for the lsof scan in seconds
        """
        self.executor = executor or TimeoutExecutor()
        if enabled is None:
            enabled = os.environ.get(ENV_HANDLE_CHECK, "1") != "0"
        self.enabled = enabled
        self.timeout = timeout
        self._lsof_path = lsof_path
        self._looked_up = lsof_path is not None

    @property
    def lsof_path(self) -> Optional[str]:
        if not self._looked_up:
            self._looked_up = True
            self._lsof_path = shutil.which("lsof")
            if not self._lsof_path:
                logger.debug("lsof not available, open handle detection disabled")
        return self._lsof_path

    @property
    def available(self) -> bool:
        return self.enabled and self.lsof_path is not None

    def find_open_handles(self, directory: str, cwd: str) -> List[OpenHandle]:
        """List processes holding files open under directory.

        Args:
            directory: Directory to scan recursively
            cwd: Where to run lsof from; must not be inside directory

        Returns:
            Unique handles sorted by process name, or [] when unavailable
        """
        if not self.available:
            return []
        result = self.executor.run_with_timeout(
            self.timeout, [self.lsof_path, "-F", "pc", "+D", directory], cwd=cwd
        )
        if result.timed_out:
            logger.debug(f"lsof timed out scanning {directory}, skipping handle check")
            return []
        # lsof exits 1 when nothing is open; output is what matters
        handles = parse_lsof_fields(result.stdout)
        logger.debug(f"Found {len(handles)} processes with open handles in {directory}")
        return handles
