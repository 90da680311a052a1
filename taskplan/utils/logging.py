"""
Logging helpers shared by the scheduling engine.

Every module obtains its logger through get_logger(__name__); the
application (or the CLI) calls setup_logging() once with the values from
SchedulerConfig.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Optional[Dict[str, Any]] = None):
    """
    Set up logging for the taskplan package.

    Args:
        config: Dictionary with optional 'log_level', 'log_format' and
            'log_file' entries
    """
    config = config or {}

    log_level_str = str(config.get("log_level") or "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    formatter = logging.Formatter(config.get("log_format") or DEFAULT_FORMAT)

    logger = logging.getLogger("taskplan")
    logger.setLevel(log_level)
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = config.get("log_file")
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Handlers live on the package logger only
    logger.propagate = False

    logger.debug(f"Logging configured at {log_level_str}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Name of the logger (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
