"""Console logging configuration for pathknock."""

import logging
import logging.config
import sys
from typing import Any, Dict


def get_logging_config(log_level: str = "INFO") -> Dict[str, Any]:
    """Get a dictConfig-compatible logging configuration.

    Args:
        log_level: Level name applied to the pathknock and uvicorn loggers

    Returns:
        Logging configuration dict
    """
    log_level = log_level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "pathknock": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }


def setup_logging(log_level: str = "INFO") -> None:
    logging.config.dictConfig(get_logging_config(log_level))
    # every proxied request would otherwise show up twice
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
