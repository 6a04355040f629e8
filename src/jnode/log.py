import os
import sys
from pathlib import Path

from loguru import logger

# Flag to track if logging has been configured
_logging_configured = False


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """
    Configures the global logger with a single sink.

    Args:
        level: Logging level. If None, JNODE_LOG_LEVEL is used, then WARNING.
        log_file: Write to this file instead of stderr. The TUI owns the
            terminal while it runs, so the CLI passes one when given.
    """
    global _logging_configured

    # Only configure once to avoid duplicate handlers
    if _logging_configured:
        return
    _logging_configured = True

    if level is None:
        level = os.getenv("JNODE_LOG_LEVEL", "WARNING").upper()

    logger.remove()
    if log_file:
        logger.add(
            Path(log_file),
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
            rotation="10 MB",
        )
    else:
        logger.add(
            sys.stderr,
            level=level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
            colorize=True,
        )
