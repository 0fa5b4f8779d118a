"""
Logging setup for the invoice engine.

Every module logs through a child of the ``invoice_engine`` logger, so one
call to setup_logger() (or setup_logger_from_config()) at startup decides
levels, colours and destinations for the whole engine. Console output goes
to stderr by default; stdout is left to whatever the caller prints, such as
the CLI's JSON result.

Usage:
    from invoice_engine.utils.logger import setup_logger, get_logger

    setup_logger(level="DEBUG")

    logger = get_logger(__name__)
    logger.info("Arbitrating totals...")
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, TextIO

import colorama
from colorama import Fore, Style

colorama.just_fix_windows_console()

ROOT_LOGGER_NAME = "invoice_engine"

class ColoredFormatter(logging.Formatter):
    """Console formatter that colours each record by level."""

    COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }
    RESET = Style.RESET_ALL

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, '')
        return f"{color}{super().format(record)}{self.RESET}"

def setup_logger(
    level: str = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,  # 10 MB
    backup_count: int = 5,
    colorize: bool = True,
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure the ``invoice_engine`` logger.

    Calling it again replaces the previous handlers, so the CLI and tests
    can reconfigure freely.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Record format string.
        date_format: Timestamp format string.
        log_file: Path of a rotating log file. None disables file logging.
        max_bytes: Size at which the log file rotates.
        backup_count: Number of rotated files to keep.
        colorize: Colour console records by level.
        stream: Console stream. Defaults to the current ``sys.stderr``.

    Returns:
        The configured engine logger.
    """
    log_format = log_format or "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format = date_format or "%Y-%m-%d %H:%M:%S"
    numeric_level = getattr(logging, level.upper())

    engine_logger = logging.getLogger(ROOT_LOGGER_NAME)
    engine_logger.setLevel(numeric_level)
    engine_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console_handler.setLevel(numeric_level)
    formatter_class = ColoredFormatter if colorize else logging.Formatter
    console_handler.setFormatter(formatter_class(log_format, datefmt=date_format))
    engine_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        engine_logger.addHandler(file_handler)

    engine_logger.propagate = False

    engine_logger.debug(f"Logging initialized at {level.upper()}")
    return engine_logger

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the engine namespace.

    Example:
        >>> get_logger("invoice_engine.arbitration.arbiter").name
        'invoice_engine.arbitration.arbiter'
        >>> get_logger("scripts.backfill").name
        'invoice_engine.scripts.backfill'
    """
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

def setup_logger_from_config() -> logging.Logger:
    """Configure logging from the ``logging`` settings section."""
    from invoice_engine.config import get_config

    log_file = None
    if get_config("logging.file.enabled", False):
        log_file = get_config("logging.file.path")

    stream_name = get_config("logging.console.stream", "stderr")
    stream = sys.stdout if stream_name == "stdout" else sys.stderr

    return setup_logger(
        level=get_config("logging.level", "INFO"),
        log_format=get_config("logging.format"),
        date_format=get_config("logging.date_format"),
        log_file=log_file,
        max_bytes=get_config("logging.file.max_bytes", 10485760),
        backup_count=get_config("logging.file.backup_count", 5),
        colorize=get_config("logging.console.colorize", True),
        stream=stream
    )
