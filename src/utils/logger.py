"""Logging for the Flavr recipe service.

One "recipe_service" logger writes to stdout in either coloured text or JSON.
Request-scoped adapters attach ids (request, client, user) and pipeline facts
(intent, specificity tier, model, duration) to every record they emit.

Environment:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_TYPE: text, json (default: text)
"""

import json
import logging
import os
import sys
from typing import Any, MutableMapping, Optional

SERVICE_LOGGER_NAME = "recipe_service"

# Record attributes emitted as structured fields when present
CONTEXT_FIELDS = (
    "request_id", "client_id", "user_id", "intent", "specificity", "model_id", "duration_ms",
)

# level -> (ANSI colour, icon)
LEVEL_STYLES = {
    "DEBUG": ("\033[36m", "🔍"),
    "INFO": ("\033[32m", "ℹ️"),
    "WARNING": ("\033[33m", "⚠️"),
    "ERROR": ("\033[31m", "❌"),
    "CRITICAL": ("\033[35m", "🔥"),
}
RESET = "\033[0m"

# Provider SDKs and their HTTP clients log every request at INFO
QUIET_LOGGERS = ("google.genai", "google_genai", "openai", "httpx", "aiohttp.access")


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, context fields, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class RichTextFormatter(logging.Formatter):
    """Coloured single-line text with a level icon and an optional [request_id] tag."""

    def format(self, record: logging.LogRecord) -> str:
        color, icon = LEVEL_STYLES.get(record.levelname, (RESET, ""))
        tag = f"[{record.request_id}] " if hasattr(record, "request_id") else ""
        line = (
            f"{color}{icon} {self.formatTime(record, '%Y-%m-%d %H:%M:%S')} "
            f"{record.levelname:<8} {record.name:<20} {tag}{record.getMessage()}{RESET}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _formatter_for(log_type: str) -> logging.Formatter:
    return JSONFormatter() if log_type == "json" else RichTextFormatter()


def get_logger(name: str) -> logging.Logger:
    """Return the named logger with a stdout handler, configuring it only once.

    Level and format come from LOG_LEVEL and LOG_TYPE at first call; unknown
    levels fall back to INFO.
    """
    instance = logging.getLogger(name)
    if instance.handlers:
        return instance

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_formatter_for(os.getenv("LOG_TYPE", "text").lower()))

    instance.setLevel(level)
    instance.addHandler(handler)
    return instance


def set_level(level: int, name: str = SERVICE_LOGGER_NAME) -> None:
    """Change a configured logger and its handlers to level (used by the CLI --debug flag)."""
    instance = logging.getLogger(name)
    instance.setLevel(level)
    for handler in instance.handlers:
        handler.setLevel(level)


class RequestLogAdapter(logging.LoggerAdapter):
    """Adapter whose context is merged with any extra= passed on an individual call."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_request_logger(request_id: str, client_id: Optional[str] = None, **fields: Any) -> RequestLogAdapter:
    """Return an adapter over the service logger tagging each record with request context.

    Example:
        >>> log = get_request_logger("a1b2", client_id="web-42", user_id="u-7")
        >>> log.info("Recipe ready", extra={"model_id": "gemini-2.5-flash-lite", "duration_ms": 812})
    """
    context: dict[str, Any] = {"request_id": request_id, **fields}
    if client_id is not None:
        context["client_id"] = client_id
    return RequestLogAdapter(logger, context)


logger = get_logger(SERVICE_LOGGER_NAME)

for _name in QUIET_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)
