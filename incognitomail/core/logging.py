"""
Logging Configuration

Structured logging for the server and the CLI.
Supports:
- Multiple log levels
- JSON and text formats
- stderr and file output

stdout is left alone: the CLI prints command results there.
"""

import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger

from incognitomail.config import Settings

# Third-party loggers that only matter when something goes wrong
QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "aiosqlite",
    "httpx",
    "httpcore",
)


def _make_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger",
            },
        )

    return logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging(settings: Settings):
    """
    Configure application logging.

    Sets up:
    - Log level from settings
    - JSON or text format
    - stderr handler, plus a file handler when LOG_FILE is set
    - Structlog processors

    Calling it again replaces the handlers installed by the previous call.

    Args:
        settings: Application settings
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper())
    formatter = _make_formatter(settings.LOG_FORMAT)

    handlers = [logging.StreamHandler(sys.stderr)]
    file_error = None
    if settings.LOG_FILE:
        try:
            handlers.append(logging.FileHandler(settings.LOG_FILE))
        except OSError as e:
            file_error = e

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)

    logging.root.setLevel(log_level)
    logging.root.handlers = handlers

    if file_error is not None:
        logging.error(f"Failed to setup file logging: {file_error}")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Never more verbose than WARNING
    quiet_level = max(log_level, logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        logging.Logger: Logger instance
    """
    return logging.getLogger(name)
