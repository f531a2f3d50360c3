"""Centralized logging configuration for the branchguard application.

Sets up standard Python logging with a console handler and optional file
handlers. Every handler uses the RedactingFormatter so tokens never reach a
log sink.
"""

import logging
import sys
from typing import Optional

from branchguard.infrastructure.resilience.sanitizer import RedactingFormatter

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
DEFAULT_LOG_FILE = None  # e.g. "branchguard.log"
DEFAULT_ERROR_LOG_FILE = None  # e.g. "branchguard-error.log"


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    error_log_file: Optional[str] = DEFAULT_ERROR_LOG_FILE,
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, logging.INFO).
        log_format: The format string for log messages.
        log_file: Optional path to a file receiving all records at ``log_level``.
        error_log_file: Optional path to a file receiving ERROR records only.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers attached to the root logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = RedactingFormatter(log_format, datefmt=DEFAULT_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for path, level in ((log_file, log_level), (error_log_file, logging.ERROR)):
        if not path:
            continue
        try:
            file_handler = logging.FileHandler(path, encoding='utf-8')
        except OSError as e:
            logging.error(f"Failed to set up file logging to {path}: {e}")
            continue
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logging.debug(f"Logging to file: {path}")

    # httpx logs every request at INFO; keep that for verbose runs only.
    logging.getLogger("httpx").setLevel(logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING)
    logging.debug(f"Logging configured. Level={logging.getLevelName(log_level)}")
