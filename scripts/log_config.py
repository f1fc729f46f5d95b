#!/usr/bin/env python3
"""
Logging setup for the subscription publisher.

The level comes from the environment:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL
- DEBUG: "1"/"true" switches to DEBUG when LOG_LEVEL is unset

Usage:
    from log_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
"""

import logging
import os
import sys
from typing import Optional

DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FORMAT_DETAILED = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.CRITICAL,
}

_logging_configured = False


def get_log_level() -> int:
    """Resolve the log level from LOG_LEVEL, then DEBUG, then the default."""
    level_str = os.environ.get("LOG_LEVEL", "").upper().strip()

    if not level_str:
        debug_flag = os.environ.get("DEBUG", "").lower().strip()
        level_str = "DEBUG" if debug_flag in ("1", "true", "yes", "on") else DEFAULT_LOG_LEVEL

    return _LEVELS.get(level_str, logging.INFO)


def setup_logging(
    level: Optional[int] = None,
    detailed: bool = False,
    force: bool = False
) -> logging.Logger:
    """Configure the root logger once per process.

    Args:
        level: explicit level, None reads the environment
        detailed: include file name and line number in each record
        force: reconfigure even if already configured

    Returns:
        The root logger
    """
    global _logging_configured

    if _logging_configured and not force:
        return logging.getLogger()

    if level is None:
        level = get_log_level()

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT_DETAILED if detailed else LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )

    # uvicorn installs its own handlers; keep its access log at our level
    for lib_logger in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(lib_logger).setLevel(level)

    _logging_configured = True

    root = logging.getLogger()
    root.debug(f"Logging configured: level={logging.getLevelName(level)}")
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a named logger, configuring logging on first use."""
    if not _logging_configured:
        setup_logging()

    return logging.getLogger(name)
