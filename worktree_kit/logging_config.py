"""Logging configuration for git-worktree-kit"""
import copy
import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOG_DIR_ENV = "WORKTREE_KIT_LOG_DIR"
DEFAULT_LOG_DIR = Path.home() / ".worktree-kit"
LOG_FILENAME = "worktree-kit.log"

DEBUG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Formatter that colours level names when stderr is a terminal."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        if sys.stderr.isatty() and record.levelname in self.COLORS:
            # Colour a copy so the file handler sees the plain level name
            record = copy.copy(record)
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def log_file_path() -> Path:
    """Where debug runs write their log (``$WORKTREE_KIT_LOG_DIR`` overrides the directory)."""
    log_dir = os.environ.get(LOG_DIR_ENV)
    return (Path(log_dir) if log_dir else DEFAULT_LOG_DIR) / LOG_FILENAME


def setup_logging(verbose: bool = False, debug: bool = False) -> Optional[Path]:
    """
    Configure logging for the application.

    WARNING by default, INFO with ``verbose``, DEBUG with ``debug``. Debug
    runs also write every record to a log file that is overwritten each run.

    Args:
        verbose: If True, show INFO level messages
        debug: If True, show DEBUG level messages and write the log file

    Returns:
        Path of the log file in debug mode, else None
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # GitPython logs every command it runs at DEBUG
    logging.getLogger("git").setLevel(logging.DEBUG if debug else logging.WARNING)

    log_file = None
    if debug:
        log_file = log_file_path()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=DEBUG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if debug:
        console_handler.setFormatter(ColoredFormatter(fmt=DEBUG_FORMAT, datefmt=DATE_FORMAT))
    else:
        console_handler.setFormatter(ColoredFormatter(fmt='[%(name)s] %(message)s'))
    root_logger.addHandler(console_handler)

    return log_file


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module, with the package prefixes stripped.

    ``worktree_kit.services.template_sync`` logs as ``template_sync`` and
    ``worktree_kit.core.installer`` as ``installer``. Modules under
    ``services.git`` keep the ``services.`` prefix; GitPython owns ``git``.
    """
    if name.startswith('worktree_kit.'):
        name = name[len('worktree_kit.'):]
    for prefix in ('services.', 'core.'):
        if name.startswith(prefix) and not name[len(prefix):].startswith('git.'):
            name = name[len(prefix):]
    return logging.getLogger(name)
