"""
Logging Utilities for the Card Detection System.

This module provides logging configuration and utilities for
consistent logging across the project.
"""

import os
import sys
import logging
from typing import Optional
from datetime import datetime


ROOT_LOGGER_NAME = 'card_detection'

# Default format
DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    console: bool = True,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Set up logger with console and file handlers.

    A file handler is only attached when ``log_file`` or ``log_dir`` is given.

    Args:
        name: Logger name.
        log_level: Logging level (e.g., logging.INFO).
        log_file: Optional specific log file name.
        log_dir: Optional directory for log files.
        console: Whether to output to console.
        format_string: Optional custom format string.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Clear existing handlers
    logger.handlers.clear()

    formatter = logging.Formatter(
        format_string or DEFAULT_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT
    )

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file is not None or log_dir is not None:
        log_dir = log_dir or '.'
        os.makedirs(log_dir, exist_ok=True)

        if log_file is None:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            log_file = f'{name}_{timestamp}.log'

        file_handler = logging.FileHandler(
            os.path.join(log_dir, log_file), encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(
    name: str = ROOT_LOGGER_NAME,
    log_level: int = logging.INFO
) -> logging.Logger:
    """
    Get a logger by name.

    Loggers below the package namespace share the handlers of the
    package root logger, which is set up with defaults on first use.

    Args:
        name: Logger name, usually ``__name__``.
        log_level: Logging level used when the root logger is created.

    Returns:
        Logger instance.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        setup_logger(ROOT_LOGGER_NAME, log_level)

    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + '.'):
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    if not logger.handlers:
        logger = setup_logger(name, log_level)
    return logger
