"""Logging configuration using dictConfig."""
from __future__ import annotations

import logging
import logging.config
import sys
from typing import Any, Dict

from regional_timeline.config import LOG_FORMAT, Settings, get_settings


def get_logging_config(settings: Settings | None = None) -> Dict[str, Any]:
    """Build the dictConfig mapping for the service."""
    settings = settings or get_settings()
    level = settings.LOG_LEVEL.upper()

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                "class": "pythonjsonlogger.json.JsonFormatter",
            },
            "console": {
                "format": LOG_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "json" if settings.LOG_JSON else "console",
                "stream": sys.stdout,
            }
        },
        "loggers": {
            "regional_timeline": {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
            "httpx": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }


def setup_logging(settings: Settings | None = None) -> None:
    """Configure logging for the whole process."""
    logging.config.dictConfig(get_logging_config(settings))
