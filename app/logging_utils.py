from __future__ import annotations

import contextvars
import json
import logging
import sys
from typing import Any

_request_id_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_user_id_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "user_id", default=None
)
_user_role_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "user_role", default=None
)

_CONTEXT_FIELDS = ("request_id", "user_id", "user_role")

_STANDARD_ATTRIBUTES = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    }
)


class RequestContextFilter(logging.Filter):
    """Attach the request id and caller identity to every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - simple
        record.request_id = _request_id_ctx_var.get()
        record.user_id = _user_id_ctx_var.get()
        record.user_role = _user_role_ctx_var.get()
        return True


class JSONLogFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields are merged in."""

    def __init__(self) -> None:  # pragma: no cover - trivial
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _CONTEXT_FIELDS:
            log_entry[field] = record.__dict__.get(field)

        for key, value in record.__dict__.items():
            if key in _CONTEXT_FIELDS:
                continue
            if key.startswith("_") or key in _STANDARD_ATTRIBUTES:
                continue
            log_entry[key] = value

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


_configured = False


def configure_logging(level: int | str = logging.INFO) -> None:
    """Route the root logger (and uvicorn's) to a JSON handler on stdout."""

    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter())
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(logger_name)
        logger.handlers = []
        logger.propagate = True

    _configured = True


def get_current_user_label() -> str:
    return _user_id_ctx_var.get() or "anonymous"


def get_current_role_label() -> str:
    """Role of the caller, used as a low-cardinality metrics label."""

    return _user_role_ctx_var.get() or "anonymous"


__all__ = [
    "configure_logging",
    "get_current_role_label",
    "get_current_user_label",
    "_request_id_ctx_var",
    "_user_id_ctx_var",
    "_user_role_ctx_var",
]
