"""Logging setup for ruleflow: plain or JSON output with per-call context."""

import json
import logging
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s%(context)s"

_context: ContextVar[Dict[str, Any]] = ContextVar("ruleflow_log_context", default={})


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(getattr(record, "extra_fields", {}))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str)


class ContextFilter(logging.Filter):
    """Merges the active logging context into every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = {**_context.get(), **getattr(record, "extra_fields", {})}
        record.extra_fields = fields
        record.context = "".join(f" {k}={v}" for k, v in fields.items())
        return True


@contextmanager
def logging_context(**fields) -> Iterator[None]:
    """Attach ``fields`` to every record logged inside the block."""
    token = _context.set({**_context.get(), **fields})
    try:
        yield
    finally:
        _context.reset(token)


def _add_handler(root: logging.Logger, handler: logging.Handler, formatter: logging.Formatter):
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    root.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    structured: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the ``ruleflow`` logger hierarchy.

    Args:
        level: Logging level name for ruleflow loggers
        log_file: Optional path of a rotating log file
        structured: Emit JSON lines instead of plain text
        max_bytes: Size at which the log file is rotated
        backup_count: Rotated files to keep

    Returns:
        The ``ruleflow`` logger
    """
    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root = logging.getLogger("ruleflow")
    root.setLevel(level.upper())
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    _add_handler(root, logging.StreamHandler(sys.stdout), formatter)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _add_handler(root, RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count), formatter)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log a message carrying extra structured fields."""
    logger.log(level, message, extra={"extra_fields": context})
