"""
Logging configuration for sitemap traversal.

Library modules only obtain loggers through :func:`get_logger`; handlers are
installed by :func:`setup_logging`, which the command line front end calls.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

ROOT_LOGGER_NAME = "sitemap_walker"


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Context passed through ``extra=``
        if getattr(record, "url", None):
            log_data["url"] = record.url
        if getattr(record, "depth", None) is not None:
            log_data["depth"] = record.depth

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ReadableFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "") if self.use_color else ""
        reset = self.RESET if self.use_color else ""

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        base = (
            f"{color}[{timestamp}] [{record.levelname:8}]{reset} "
            f"{record.name}: {record.getMessage()}"
        )

        extras = []
        if getattr(record, "url", None):
            url = record.url
            if len(url) > 60:
                url = url[:57] + "..."
            extras.append(f"url={url}")
        if getattr(record, "depth", None) is not None:
            extras.append(f"depth={record.depth}")

        if extras:
            base += f" [{', '.join(extras)}]"

        if record.exc_info:
            base += f"\n{self.formatException(record.exc_info)}"

        return base


def setup_logging(
    level: str = "WARNING",
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatter for machine parsing
        log_file: Optional file path for log output

    Returns:
        The package's root logger
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    # stderr, so that URLs written to stdout stay machine readable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG)

    if json_format:
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(ReadableFormatter(use_color=sys.stderr.isatty()))

    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
