"""
Logging configuration for Websii.

This module provides a standardized logging setup to ensure consistent logging
across the server, the watcher and the control client.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s %(funcName)s %(lineno)d"


def configure_logging(
    logger_name: str = "websii",
    log_level: str = "INFO",
    log_to_console: bool = True,
    log_to_file: bool = False,
    log_file: Optional[str] = None,
    use_json_format: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        logger_name: Name of the logger
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_console: Whether to log to console
        log_to_file: Whether to log to file
        log_file: Path of the log file, required when log_to_file is set
        use_json_format: Whether to use JSON format for logs
        max_file_size_mb: Maximum log file size in MB
        backup_count: Number of backup log files to keep
        log_format: Format string for the plain text formatter

    Returns:
        Configured logger
    """
    logger = logging.getLogger(logger_name)

    log_level_dict = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL
    }
    logger.setLevel(log_level_dict.get(str(log_level).upper(), logging.INFO))

    # Clear existing handlers
    logger.handlers = []

    if use_json_format:
        formatter = JsonFormatter(JSON_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    else:
        formatter = logging.Formatter(log_format, datefmt='%Y-%m-%d %H:%M:%S')

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_to_file and log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(exist_ok=True, parents=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logging configured for {logger_name}")
    return logger


def configure_from_config(config: dict, log_level: Optional[str] = None) -> logging.Logger:
    """Configure the ``websii`` logger tree from the ``logging`` config section."""
    log_config = config.get("logging", {})
    log_file = log_config.get("file")
    return configure_logging(
        log_level=log_level or log_config.get("level", "INFO"),
        log_to_file=bool(log_file),
        log_file=log_file,
        use_json_format=bool(log_config.get("json", False)),
        max_file_size_mb=max(1, int(log_config.get("max_size", 10 * 1024 * 1024)) // (1024 * 1024)),
        backup_count=int(log_config.get("backup_count", 5)),
        log_format=log_config.get("format", DEFAULT_FORMAT),
    )


def get_logger(module_name: str, parent_logger: str = "websii") -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        module_name: Name of the module
        parent_logger: Name of the parent logger

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{parent_logger}.{module_name}")
