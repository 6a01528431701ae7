"""
Centralized logging configuration for cpdb.

Discovery callbacks are delivered on whatever thread the foreign D-Bus
transport dispatches on, so every record carries the thread it came from.
The package itself only installs a NullHandler; applications that want
output call setup_logging() once.

Log Format:
    2026-10-19 10:15:30 [DEBUG   ] [MainThread] cpdb.services.frontend - Frontend created
    2026-10-19 10:15:31 [DEBUG   ] [gdbus] cpdb.services.discovery - Printer added: PDF (CUPS)

Usage:
    # At application startup
    from cpdb.logging_config import setup_logging

    setup_logging(log_level=logging.DEBUG, enable_file_logging=False)

    # In modules
    logger = get_logger(__name__)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from cpdb.config import Config

ROOT_LOGGER_NAME = "cpdb"


# =============================================================================
# THREAD CONTEXT FILTER
# =============================================================================

class ThreadContextFilter(logging.Filter):
    """
    Logging filter that adds thread context to all log records.

    Adds thread_name and thread_id attributes, used by the format string to
    tell caller-thread records apart from foreign-callback records.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current_thread = threading.current_thread()
        record.thread_name = current_thread.name
        record.thread_id = threading.get_ident()
        return True


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    app_name: str = ROOT_LOGGER_NAME,
    log_level: Optional[int] = None,
    log_dir: Optional[Path] = None,
    enable_file_logging: Optional[bool] = None,
) -> logging.Logger:
    """
    Configure cpdb logging with thread context.

    This sets up:
    1. Console handler on stderr (always enabled)
    2. Rotating file handler (optional)
    3. Error file handler (optional) - for ERROR/CRITICAL only
    4. Thread context filter on every handler

    Args:
        app_name: Name of the logger to configure (default: "cpdb")
        log_level: Minimum log level (default: Config.LOG_LEVEL)
        log_dir: Directory for log files (default: Config.LOG_DIR or ./logs)
        enable_file_logging: Whether to write log files (default: Config.ENABLE_FILE_LOGGING)

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = logging.getLevelName(Config.LOG_LEVEL)
        if not isinstance(log_level, int):
            log_level = logging.WARNING
    if enable_file_logging is None:
        enable_file_logging = Config.ENABLE_FILE_LOGGING

    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    thread_filter = ThreadContextFilter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(Config.LOG_DIR) if Config.LOG_DIR else Path.cwd() / "logs"

        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        file_handler = RotatingFileHandler(
            filename=app_log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB per file
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(thread_filter)
        logger.addHandler(file_handler)

        error_log_file = log_dir / f"{app_name}_error.log"
        error_handler = RotatingFileHandler(
            filename=error_log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(thread_filter)
        logger.addHandler(error_handler)

        logger.info(f"File logging enabled: {app_log_file}")

    logger.debug(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


# =============================================================================
# LOGGER FACTORY
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the cpdb namespace.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance inheriting the setup_logging() configuration

    Example:
        logger = get_logger("myapp.printing")
        # Logger name: "cpdb.myapp.printing"
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
