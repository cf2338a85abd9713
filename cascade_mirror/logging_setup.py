"""Logging setup for cascade-mirror.

Text output for people watching the bridge run, JSON lines for log shippers.

Note: Named logging_setup.py to avoid conflicts with Python's built-in logging module.
"""

import sys
import json
import logging
from typing import Any, Dict, Optional, Union
from datetime import datetime, timezone

PACKAGE_LOGGER = "cascade_mirror"

# Chatty third-party loggers kept at WARNING unless running verbose
NOISY_LOGGERS = ("websockets", "aiohttp.access")


class JSONFormatter(logging.Formatter):
    """Formats log records as one JSON object per line.

    Example output:
        {"timestamp": "2025-10-24T23:30:00.123000Z", "level": "INFO",
         "logger": "cascade_mirror.app", "message": "Snapshot updated",
         "extra": {"viewers": 2}}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_data["extra"] = context

        if record.levelno == logging.DEBUG:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable single-line format.

    Example output:
        2025-10-24 23:30:00 [INFO] cascade_mirror.app: Snapshot updated
    """

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            pairs = " ".join(f"{k}={v}" for k, v in context.items())
            line = f"{line} [{pairs}]"
        return line


def setup_logging(
    format_type: str = "text",
    level: Optional[str] = None,
    quiet: bool = False,
    verbose: bool = False,
) -> None:
    """Configure the root logger.

    Args:
        format_type: Output format - "json" or "text" (default: "text")
        level: Logging level name. If None, determined by quiet/verbose flags
        quiet: Only errors (sets level to ERROR)
        verbose: Debug output (sets level to DEBUG)

    Precedence for level determination:
        1. quiet flag -> ERROR
        2. verbose flag -> DEBUG
        3. explicit level argument -> as specified
        4. default -> INFO
    """
    if quiet:
        log_level = logging.ERROR
    elif verbose:
        log_level = logging.DEBUG
    elif level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = logging.INFO

    formatter: Union[JSONFormatter, TextFormatter]
    if format_type == "json":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger(PACKAGE_LOGGER).setLevel(log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(log_level if verbose else max(log_level, logging.WARNING))


def log_with_context(
    logger: logging.Logger, level: int, message: str, **context_fields
) -> None:
    """Log a message with structured context fields.

    The fields land under "extra" in JSON output and as key=value pairs in text output.

    Example:
        log_with_context(logger, logging.INFO, "Snapshot updated", viewers=2)
    """
    if context_fields:
        logger.log(level, message, extra={"context": context_fields})
    else:
        logger.log(level, message)
