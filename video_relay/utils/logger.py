"""
Structured logging for the video relay.

Provides a JSON formatter for production log shipping, a plain text formatter
for local development, root and Uvicorn logger configuration, and a
LoggerAdapter helper that tags every line of an upload with its context.

Usage:
    from video_relay.utils.logger import setup_logging, add_log_context

    setup_logging(log_level="INFO", json_logs=True)

    logger = logging.getLogger(__name__)
    upload_logger = add_log_context(logger, file_name="video.mp4", person_name="Alice")
    upload_logger.info("Uploading to Drive")
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any


# =============================================================================
# Constants
# =============================================================================

LOG_LEVEL_MAP: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Chatty client libraries kept at third_party_level
THIRD_PARTY_LOGGERS: list[str] = [
    "googleapiclient",
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google_auth_httplib2",
    "google.auth",
    "httplib2",
    "redis",
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
    "asyncio",
]


# =============================================================================
# JSON Formatter
# =============================================================================


class LogJSONEncoder(json.JSONEncoder):
    """JSON encoder that stringifies anything json cannot serialize natively."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        if isinstance(obj, (set, frozenset)):
            return list(obj)
        return str(obj)


class JSONFormatter(logging.Formatter):
    """
    Render each LogRecord as one line of JSON.

    Extra fields passed through ``extra=`` or a ContextLoggerAdapter are
    collected under an ``extra`` key.

    Example output:
        {"timestamp":"2024-01-02T03:04:05.000000+00:00","level":"INFO",
         "logger":"video_relay.services.upload_service",
         "message":"Upload complete","extra":{"file_id":"1AbC","file_name":"Alice_2024-..."}}
    """

    # Standard LogRecord attributes, never treated as extras
    RESERVED_ATTRS: frozenset[str] = frozenset(
        {
            "args",
            "asctime",
            "created",
            "exc_info",
            "exc_text",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "message",
            "module",
            "msecs",
            "msg",
            "name",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "thread",
            "threadName",
            "taskName",
            "color_message",
        }
    )

    def __init__(self, include_extra_fields: bool = True, include_source_location: bool = False) -> None:
        super().__init__()
        self.include_extra_fields = include_extra_fields
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="microseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            log_entry["source"] = {
                "filename": record.filename,
                "lineno": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_entry["exception"] = self._format_exception(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        if self.include_extra_fields:
            extra_fields = self._extract_extra_fields(record)
            if extra_fields:
                log_entry["extra"] = extra_fields

        try:
            return json.dumps(log_entry, cls=LogJSONEncoder, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            fallback_entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "level": "ERROR",
                "logger": "JSONFormatter",
                "message": f"Failed to serialize log record: {e}",
                "original_message": str(record.msg),
            }
            return json.dumps(fallback_entry, ensure_ascii=False)

    @staticmethod
    def _format_exception(exc_info: tuple) -> dict[str, Any]:
        exc_type, exc_value, _ = exc_info
        return {
            "type": exc_type.__name__ if exc_type else "Unknown",
            "message": str(exc_value) if exc_value else "",
            "traceback": "".join(traceback.format_exception(*exc_info)),
        }

    def _extract_extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in self.RESERVED_ATTRS
        }


class StandardFormatter(logging.Formatter):
    """Human-readable ``[TIMESTAMP] LEVEL logger: message`` output for development."""

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt or self.DEFAULT_FORMAT, datefmt=datefmt or self.DEFAULT_DATE_FORMAT)


# =============================================================================
# Setup
# =============================================================================


def get_log_level_from_string(level_str: str) -> int:
    """Map a level name to its logging constant, defaulting to INFO."""
    return LOG_LEVEL_MAP.get(level_str.upper(), logging.INFO)


def _build_formatter(json_logs: bool, level: int) -> logging.Formatter:
    if json_logs:
        return JSONFormatter(include_extra_fields=True, include_source_location=level <= logging.DEBUG)
    return StandardFormatter()


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure the root logger, the Uvicorn loggers and third-party verbosity.

    Call once at startup, from the FastAPI lifespan. Calling again replaces
    the handlers rather than stacking them.

    Args:
        log_level: Application log level name.
        json_logs: JSON lines when True, plain text otherwise.
        third_party_level: Level applied to Google client, Redis and HTTP libraries.
    """
    level = get_log_level_from_string(log_level)
    formatter = _build_formatter(json_logs, level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    _configure_uvicorn_logging(formatter, level)

    third_party_log_level = get_log_level_from_string(third_party_level)
    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(third_party_log_level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s", logging.getLevelName(level), json_logs
    )


def _configure_uvicorn_logging(formatter: logging.Formatter, level: int) -> None:
    """Route Uvicorn's own loggers through the application formatter."""
    for name, stream in (
        ("uvicorn", sys.stdout),
        ("uvicorn.access", sys.stdout),
        ("uvicorn.error", sys.stderr),
    ):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)


# =============================================================================
# Context Enrichment
# =============================================================================


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges its context into each call's ``extra``.

    Values passed explicitly with ``extra=`` win over the adapter context.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


def add_log_context(logger: logging.Logger, **kwargs: Any) -> logging.LoggerAdapter:
    """
    Wrap ``logger`` so every message carries the given context fields.

    Example:
        ctx_logger = add_log_context(logger, request_id="abc-123", file_name="clip.mp4")
        ctx_logger.info("Upload started")
    """
    return ContextLoggerAdapter(logger, kwargs)


__all__ = [
    "JSONFormatter",
    "StandardFormatter",
    "ContextLoggerAdapter",
    "setup_logging",
    "add_log_context",
    "get_log_level_from_string",
    "LOG_LEVEL_MAP",
]
