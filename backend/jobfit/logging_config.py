"""
Logging configuration for the scoring service
"""
import logging
import logging.config
import os
from typing import Any, Dict

FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-30s | %(funcName)-20s:%(lineno)-4d | %(message)s",
}

# third-party loggers that are chatty at INFO
_QUIET = ("pdfminer", "PIL", "httpx", "google_genai", "multipart")


def setup_logging(level: str = "INFO", format_style: str = "detailed") -> None:
    """
    Setup logging for the jobfit.* namespace and uvicorn

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_style: 'simple' or 'detailed'
    """
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": FORMATS.get(format_style, FORMATS["detailed"]),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "jobfit": {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
        },
    }
    for name in _QUIET:
        config["loggers"][name] = {"level": "WARNING"}

    logging.config.dictConfig(config)
    logging.getLogger("jobfit.logging").debug("Logging configured - Level: %s", level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with consistent naming

    Module names already under the package keep their name; anything else is
    nested below ``jobfit``.
    """
    if name == "jobfit" or name.startswith("jobfit."):
        return logging.getLogger(name)
    return logging.getLogger(f"jobfit.{name}")


def configure_for_environment() -> None:
    """Configure logging based on environment variables"""
    environment = os.getenv("ENV", "dev").lower()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    if environment in {"prod", "production"}:
        setup_logging(level=log_level, format_style="detailed")
    elif environment in {"test", "testing"}:
        setup_logging(level="WARNING", format_style="simple")
    else:
        setup_logging(level=log_level)
