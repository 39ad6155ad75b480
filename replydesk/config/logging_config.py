"""
Configure logging for the application.

All modules log through the single "replydesk" logger. configure_logging() sends it to
stdout and, when the log directory is writable, to a rotating file. The chatty loggers
of the Gemini client stack are capped at WARNING so request traces do not drown the
application's own messages.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from replydesk.config.constants import LOGGER_NAME

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILE_NAME = "replydesk.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

THIRD_PARTY_LOGGERS = ("google_genai", "httpx", "httpcore", "websockets")


def _console_handler(formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    return handler


def _file_handler(formatter: logging.Formatter, log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def configure_logging(level: Optional[str] = None, log_dir: Optional[Path] = None):
    """
    Configure the application logger with console and file handlers.

    Calling it again replaces the handlers instead of adding more.

    Args:
        level: Level name overriding the LOG_LEVEL environment variable, which is
            read on every call
        log_dir: Directory of the rotating log file (LOG_DIR env var, default "logs")

    Returns:
        logging.Logger: The configured logger instance
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    logger.addHandler(_console_handler(formatter))

    try:
        logger.addHandler(_file_handler(formatter, log_dir or LOG_DIR))
    except OSError as e:
        logger.warning(f"Could not set up file logging: {e}")

    logger.propagate = False

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging configured")
    return logger
