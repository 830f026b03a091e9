"""Structured JSON logging with per-request identifiers."""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import IO, Any, Callable

REQUEST_ID = "request_id"

_request_id: ContextVar[str | None] = ContextVar(REQUEST_ID, default=None)


class _JsonFormatter(logging.Formatter):
    _levels = {logging.INFO: "info", logging.ERROR: "error", logging.CRITICAL: "fatal"}

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": self._levels.get(record.levelno, record.levelname.lower()),
            "ts": record.created,
            "logger": record.name,
            "msg": record.getMessage(),
            **getattr(record, "fields", {}),
        }
        return json.dumps(entry, default=str)


class Logger:
    """A JSON line logger that tags records with the current request id."""

    def __init__(self, name: str = "orderdesk", stream: IO[str] | None = None) -> None:
        self._log = logging.Logger(name, logging.INFO)
        self._stream = stream
        self._handler = logging.StreamHandler(stream)
        self._handler.setFormatter(_JsonFormatter())
        self._log.addHandler(self._handler)

    def _emit(self, level: int, msg: str, fields: dict[str, Any]) -> None:
        if self._stream is None:
            self._handler.stream = sys.stderr
        request_id = _request_id.get()
        if request_id is not None:
            fields[REQUEST_ID] = request_id
        self._log.log(level, msg, extra={"fields": fields})

    def info(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.INFO, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.ERROR, msg, kwargs)

    def fatal(self, msg: str, **kwargs: Any) -> None:
        """Log the message and exit with status 1."""
        self._emit(logging.CRITICAL, msg, kwargs)
        raise SystemExit(1)


_default_logger = Logger()


def get_logger() -> Logger:
    """Return the process-wide logger."""
    return _default_logger


def current_request_id() -> str | None:
    """Return the id of the request being handled, if any."""
    return _request_id.get()


def intercept(method: str, handler: Callable[[Any], Any], request: Any) -> Any:
    """Run ``handler(request)`` under a fresh request id, logging the call."""
    token = _request_id.set(str(uuid.uuid4()))
    try:
        get_logger().info(
            "request", method=method, request_time=datetime.now(timezone.utc).isoformat()
        )
        return handler(request)
    finally:
        _request_id.reset(token)