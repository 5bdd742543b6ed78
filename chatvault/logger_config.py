"""
Logging configuration for chatvault.

Configures the standard logging module through dictConfig, so it can be
called again (e.g. by the CLI after parsing --verbose) without stacking
handlers.

Environment Variables:
    CHATVAULT_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                         LOG_LEVEL is honoured when this is unset.
                         Defaults to INFO if not set or invalid.
    CHATVAULT_LOG_FILE: Optional path of a rotating log file.

Usage:
    from chatvault.logger_config import setup_logging
    setup_logging()
    setup_logging(level=logging.DEBUG, log_file="import.log")
"""

import logging
import logging.config
import os
from typing import Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS: Dict[str, str] = {
    "multipart": "WARNING",
    "python_multipart": "WARNING",
    "httpx": "WARNING",
}


def get_log_level() -> int:
    """
    Get log level from the environment.

    Reads CHATVAULT_LOG_LEVEL, then LOG_LEVEL (case-insensitive).

    Returns:
        Logging level constant, logging.INFO if unset or invalid.
    """
    level_name = os.getenv("CHATVAULT_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
    level = getattr(logging, level_name.upper(), None)

    if not isinstance(level, int):
        return logging.INFO

    return level


def build_logging_config(
    level: int,
    format_string: str = DEFAULT_FORMAT,
    log_file: Optional[str] = None,
) -> dict:
    """
    Build the dictConfig dictionary.

    Args:
        level: Root logging level.
        format_string: Log record format.
        log_file: Optional file path for a rotating file handler.
    """
    config: dict = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": format_string,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            name: {"level": quiet_level} for name, quiet_level in QUIET_LOGGERS.items()
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "standard",
            "filename": log_file,
            "maxBytes": 5_242_880,  # 5 MB
            "backupCount": 3,
            "encoding": "utf-8",
        }
        config["root"]["handlers"].append("file")

    return config


def setup_logging(
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level. If None, read from the environment.
        format_string: Optional custom format string.
        log_file: Optional log file path. If None, CHATVAULT_LOG_FILE is used.
    """
    if level is None:
        level = get_log_level()
    if log_file is None:
        log_file = os.getenv("CHATVAULT_LOG_FILE") or None

    logging.config.dictConfig(
        build_logging_config(level, format_string or DEFAULT_FORMAT, log_file)
    )
