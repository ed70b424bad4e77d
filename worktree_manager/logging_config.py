"""Logging configuration for worktree-manager.

User-facing output goes through DisplayService. Logging is for diagnostics:
warnings by default, INFO with --verbose, and with --debug everything plus
the git commands GitPython runs, mirrored to ~/.worktree-manager/<command>.log.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOG_DIR = Path.home() / '.worktree-manager'

_DEBUG_FORMAT = '%(asctime)s %(levelname)-8s %(name)s: %(message)s'
_DATE_FORMAT = '%H:%M:%S'

# Loggers from libraries we drive; only useful when debugging
_LIBRARY_LOGGERS = ('git', 'git.cmd', 'git.repo')


class ColoredFormatter(logging.Formatter):
    """Colour the level name when stderr is a colour-capable terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[2m',     # Dim
        logging.INFO: '\033[34m',     # Blue
        logging.WARNING: '\033[33m',  # Yellow
        logging.ERROR: '\033[31m',    # Red
        logging.CRITICAL: '\033[1;31m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if color and use_color():
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def use_color(stream=None) -> bool:
    """NO_COLOR and TERM=dumb switch colour off, as they do for rich output."""
    if os.environ.get("NO_COLOR") or os.environ.get("TERM") == "dumb":
        return False
    stream = stream or sys.stderr
    return hasattr(stream, "isatty") and stream.isatty()


def setup_logging(verbose: bool = False, debug: bool = False, command: str = "worktree-manager") -> Optional[Path]:
    """Configure logging for one CLI invocation.

    Args:
        verbose: Show INFO messages
        debug: Show DEBUG messages, include GitPython's command log, and
            write a log file
        command: CLI name, used for the log file name

    Returns:
        Path of the debug log file, or None when not debugging
    """
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if debug:
        console_handler.setFormatter(ColoredFormatter(fmt=_DEBUG_FORMAT, datefmt=_DATE_FORMAT))
    else:
        console_handler.setFormatter(ColoredFormatter(fmt='%(levelname)s: %(message)s'))
    root_logger.addHandler(console_handler)

    if not debug:
        return None

    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / f"{command}.log"
    file_handler = logging.FileHandler(log_file, mode='w')  # one run per file
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(fmt=_DEBUG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    root_logger.addHandler(file_handler)
    return log_file


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, named without the package prefix (core.cleanup, services.handles)."""
    prefix = 'worktree_manager.'
    if name.startswith(prefix):
        name = name[len(prefix):]
    return logging.getLogger(name)
