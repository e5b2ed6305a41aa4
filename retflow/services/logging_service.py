"""
Logging setup for Retflow.

Every module logs through get_logger(__name__). setup_logging() is called
once by the application entry point and attaches a console handler plus,
when the log directory is writable, a daily file under
~/.local/share/retflow/logs/.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional


DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "retflow" / "logs"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logging_initialized = False


def _log_file_handler(log_dir: Path, log_level: int) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"retflow_{datetime.now().strftime('%Y%m%d')}.log"

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    log_to_file: bool = True,
    log_dir: Optional[Path] = None,
) -> Optional[Path]:
    """
    Configure the root logger for the annotation editor.

    The console always logs at log_level. If the log file cannot be
    created a warning is logged and the console stays the only output.

    Args:
        log_level: Level for the root logger and all handlers.
        log_to_file: Whether to add the daily log file.
        log_dir: Directory for log files (defaults to DEFAULT_LOG_DIR).

    Returns:
        Path of the log file in use, or None when logging to console only
        or when logging was already configured.
    """
    global _logging_initialized

    if _logging_initialized:
        return None

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(console_handler)

    _logging_initialized = True

    if not log_to_file:
        return None

    try:
        file_handler = _log_file_handler(log_dir or DEFAULT_LOG_DIR, log_level)
    except OSError as e:
        root_logger.warning(f"Could not create log file: {e}. Logging to console only.")
        return None

    root_logger.addHandler(file_handler)
    return Path(file_handler.baseFilename)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (use __name__)."""
    return logging.getLogger(name)
