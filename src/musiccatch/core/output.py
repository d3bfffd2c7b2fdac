"""
Unified output system using Loguru.
File logging for diagnostics plus plain console output for user-facing messages.
"""

import threading
from pathlib import Path

from loguru import logger


def setup_loguru(log_file: Path, level: str = "INFO") -> None:
    """
    Configure loguru for file logging.

    Args:
        log_file: Path to log file
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default stderr handler so playback output stays clean
    logger.remove()

    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,  # Keep 5 backup files
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,
    )

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to the log file AND prints to stdout.

    Use this instead of print() for user-facing messages that should also be logged.
    Threads flagged with ``silent_logging`` only write to the log.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    log_func = getattr(logger, level)
    log_func(message)

    silent = getattr(threading.current_thread(), "silent_logging", False)
    if not silent:
        print(message)
