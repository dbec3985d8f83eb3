"""Structured logging configuration with correlation fields."""
import logging
import json
import random
import string
import sys
import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextvars import ContextVar

# Context variables for log correlation
current_request_id: ContextVar[str] = ContextVar("request_id", default="")
current_actor_id: ContextVar[str] = ContextVar("actor_id", default="")
current_batch_id: ContextVar[str] = ContextVar("batch_id", default="")
current_stock_id: ContextVar[str] = ContextVar("stock_id", default="")

_CONTEXT_VARS = {
    "request_id": current_request_id,
    "actor_id": current_actor_id,
    "batch_id": current_batch_id,
    "stock_id": current_stock_id,
}


def generate_batch_id() -> str:
    """Generate an import batch ID: CSV-<unixMillis>-<6 random chars>."""
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"CSV-{int(time.time() * 1000)}-{suffix}"


def set_context(
    request_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    stock_id: Optional[str] = None,
) -> None:
    """Set logging context variables."""
    if request_id is not None:
        current_request_id.set(request_id)
    if actor_id is not None:
        current_actor_id.set(actor_id)
    if batch_id is not None:
        current_batch_id.set(batch_id)
    if stock_id is not None:
        current_stock_id.set(stock_id)


def clear_context() -> None:
    """Clear all logging context variables."""
    for var in _CONTEXT_VARS.values():
        var.set("")


# Short labels used by the text formatter, in display order
_TEXT_LABELS = {
    "request_id": "req",
    "actor_id": "actor",
    "batch_id": "batch",
    "stock_id": "stock",
}


def current_context() -> Dict[str, str]:
    """Non-empty correlation fields of the current context."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message and context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **current_context(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(getattr(record, "extra_fields", {}))
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Console format: `<time> <LEVEL> <logger> [req=.., actor=..]: <message>`."""

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        labels = [f"{_TEXT_LABELS[name]}={value}" for name, value in context.items()]
        prefix = " ".join([
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            f"{record.levelname:8s}",
            record.name,
        ])
        if labels:
            prefix += f" [{', '.join(labels)}]"
        line = f"{prefix}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


_FORMATTERS = {"json": JSONFormatter, "text": TextFormatter}


def setup_logging(
    level: str = "INFO",
    format_type: str = "text",
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """
    Attach a single stdout handler to a logger (root by default).

    Unknown levels fall back to INFO and unknown formats to text. Named
    loggers stop propagating so records are not printed twice.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(_FORMATTERS.get(format_type.lower(), TextFormatter)())

    logger = logging.getLogger(logger_name)
    logger.setLevel(numeric_level)
    logger.handlers.clear()
    logger.addHandler(handler)
    if logger_name:
        logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Context manager for setting and clearing log context."""

    def __init__(
        self,
        request_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        batch_id: Optional[str] = None,
        stock_id: Optional[str] = None,
    ):
        self.values = {
            "request_id": request_id,
            "actor_id": actor_id,
            "batch_id": batch_id,
            "stock_id": stock_id,
        }
        self._tokens = {}

    def __enter__(self):
        for name, value in self.values.items():
            if value:
                self._tokens[name] = _CONTEXT_VARS[name].set(value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for name, token in self._tokens.items():
            _CONTEXT_VARS[name].reset(token)
        return False
