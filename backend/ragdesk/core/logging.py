"""Logging setup for ragdesk.

Records are written as one JSON object per line (``orjson``) unless
``RAGDESK_LOG_JSON`` is switched off. Structured fields travel through
``extra`` keys prefixed with ``ctx_``; :func:`bind` returns an adapter that
attaches the same fields to every record, which the ingest pipeline uses to
tag each stage with the resource being processed.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, MutableMapping

import orjson

CONTEXT_PREFIX = "ctx_"
_HANDLER_NAME = "ragdesk"
_QUIET_LOGGERS = ("uvicorn.access", "urllib3", "multipart")


def _env_level() -> str:
    return os.environ.get("RAGDESK_LOG_LEVEL", "INFO").upper()


def _env_json() -> bool:
    return os.environ.get("RAGDESK_LOG_JSON", "1").lower() not in {"0", "false", "no"}


class JsonFormatter(logging.Formatter):
    """Render a record and its ``ctx_`` fields as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(context_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


class TextFormatter(logging.Formatter):
    """Plain formatter that appends ``key=value`` context pairs."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = context_fields(record)
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter merging bound context into each record's extras."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def context_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key[len(CONTEXT_PREFIX) :]: value
        for key, value in record.__dict__.items()
        if key.startswith(CONTEXT_PREFIX)
    }


def configure_logging(level: str | int | None = None, use_json: bool | None = None) -> None:
    """Install the ragdesk handler on the root logger, replacing a previous one."""
    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level or _env_level())
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JsonFormatter() if (_env_json() if use_json is None else use_json) else TextFormatter())
    root.handlers = [existing for existing in root.handlers if existing.get_name() != _HANDLER_NAME]
    root.addHandler(handler)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = "ragdesk") -> logging.Logger:
    """Return a named logger, configuring the root logger on first use."""
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def bind(logger: logging.Logger, **context: Any) -> ContextAdapter:
    """Return ``logger`` with ``context`` attached to every record."""
    return ContextAdapter(logger, {f"{CONTEXT_PREFIX}{key}": value for key, value in context.items()})


__all__ = ["ContextAdapter", "JsonFormatter", "TextFormatter", "bind", "configure_logging", "get_logger"]
