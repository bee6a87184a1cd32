"""Logging configuration with per-user and per-card context.

This module provides:
- Context variables for the signed-in user, the card being worked on and a
  request ID, attached to every record by ``ContextFilter``
- JSON structured output (``StructuredFormatter``) or a plain text format
- ``redact`` for payloads that carry card secrets or credentials
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, TextIO

user_email_var: ContextVar[Optional[str]] = ContextVar("user_email", default=None)
card_id_var: ContextVar[Optional[str]] = ContextVar("card_id", default=None)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

REDACTED = "***"

SENSITIVE_KEYS = frozenset(
    {
        "card_number",
        "cvv",
        "pin",
        "password",
        "secretkey",
        "publickey",
        "idToken",
        "refreshToken",
    }
)

_CONTEXT_FIELDS = ("user_email", "card_id", "request_id")

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        *_CONTEXT_FIELDS,
    }
)


class ContextFilter(logging.Filter):
    """Logging filter that copies the context variables onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.user_email = user_email_var.get()
        record.card_id = card_id_var.get()
        record.request_id = request_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure logging for the ``walletcards`` logger tree.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines (True) or a plain text format (False)
        stream: Output stream, stderr by default so command output stays clean
    """
    logger = logging.getLogger("walletcards")
    logger.setLevel(getattr(logging, level.upper()))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(user_email)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    logger.addHandler(handler)
    logger.propagate = False


def generate_request_id() -> str:
    """Generate a new request ID."""
    return f"req_{uuid.uuid4().hex[:16]}"


def redact(payload: Any) -> Any:
    """Return a copy of ``payload`` with sensitive values masked."""
    if isinstance(payload, Mapping):
        return {
            key: REDACTED if key in SENSITIVE_KEYS and value else redact(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [redact(item) for item in payload]
    return payload


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(
        self,
        user_email: Optional[str] = None,
        card_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        self.user_email = user_email
        self.card_id = card_id
        self.request_id = request_id
        self._tokens: list = []

    def __enter__(self) -> "LogContext":
        if self.user_email:
            self._tokens.append((user_email_var, user_email_var.set(self.user_email)))
        if self.card_id:
            self._tokens.append((card_id_var, card_id_var.set(self.card_id)))
        if self.request_id:
            self._tokens.append((request_id_var, request_id_var.set(self.request_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
