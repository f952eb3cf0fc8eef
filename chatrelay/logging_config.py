"""JSON line logging for the relay.

Every record carries the relay `service` name and, when the event is tied to an
inbound WhatsApp message, a top-level `message_id` so one message can be
followed from admission to delivery with a single filter.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

LOGGER_NAMESPACE = "chatrelay"

# Client libraries whose per-request INFO lines duplicate our own gateway/LLM logs
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": LOGGER_NAMESPACE,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = dict(getattr(record, "context", None) or {})
        message_id = context.pop("message_id", None)
        if message_id:
            entry["message_id"] = message_id
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["error_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> logging.Handler:
    """Route the root logger to one JSON handler; unknown level names fall back to INFO."""
    root = logging.getLogger()
    resolved = logging.getLevelName(level.upper())
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Bound fields plus a per-call `context=` kwarg end up in the record's `context`."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = {**(self.extra or {}), **(kwargs.pop("context", None) or {})}
        if context:
            kwargs["extra"] = {**kwargs.get("extra", {}), "context": context}
        return msg, kwargs


def for_message(logger: logging.Logger, message_id: Optional[str]) -> ContextLoggerAdapter:
    """Adapter tagging every record with the inbound message id (omitted when absent)."""
    return ContextLoggerAdapter(logger, {"message_id": message_id} if message_id else {})
