"""Logging setup for feebook.

The CLI prints its results as JSON on stdout, so log lines only ever go to
stderr or to a file. When stderr is not a terminal (cron running
``feebook notify-overdue``, a systemd timer) console lines carry timestamps
like the file log does.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Config

TIMESTAMPED_FORMAT = "%(asctime)s %(levelname)-5s [%(name)-18s] %(message)s"
INTERACTIVE_FORMAT = "%(levelname)-5s [%(name)-18s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Track whether logging has been initialized to prevent double-init
_initialized = False


def _console_format(stream) -> str:
    isatty = getattr(stream, "isatty", None)
    if isatty is not None and isatty():
        return INTERACTIVE_FORMAT
    return TIMESTAMPED_FORMAT


def log_file_path(config: Config) -> Path:
    """Configured log file, or ``<db name>.log`` beside the ledger database."""
    if config.logging.file:
        return Path(config.logging.file)
    return Path(config.db_path).with_suffix(".log")


def setup_logging(config: Config, verbose: bool = False) -> None:
    """
    Configure logging for the feebook application.

    Args:
        config: Application configuration with logging settings
        verbose: If True, override config level to DEBUG
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_config = config.logging

    level_str = "DEBUG" if verbose else log_config.level.upper()
    level = getattr(logging, level_str, logging.INFO)

    logger = logging.getLogger("feebook")
    logger.setLevel(level)
    logger.handlers.clear()

    if log_config.output in ("console", "both"):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            logging.Formatter(_console_format(sys.stderr), datefmt=DATE_FORMAT)
        )
        logger.addHandler(console_handler)

    if log_config.output in ("file", "both"):
        file_path = log_file_path(config)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        if log_config.rotate:
            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=log_config.max_size_mb * 1024 * 1024,
                backupCount=log_config.backup_count,
            )
        else:
            file_handler = logging.FileHandler(file_path)

        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(TIMESTAMPED_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    for noisy_logger in ("httpx", "httpcore"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def reset_logging() -> None:
    """Reset logging state for testing purposes."""
    global _initialized
    _initialized = False
    logger = logging.getLogger("feebook")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
