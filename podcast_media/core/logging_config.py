"""
Logging Configuration for podcast-media

Features:
- JSON structured logs via structlog for production
- Pretty console output for development
- Request trace IDs held in a context variable (safe across concurrent requests)
- Third-party library noise filtering
- Dual streams: INFO/DEBUG → stdout, ERROR/CRITICAL → stderr
"""

import logging
import logging.config
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict
from pythonjsonlogger import jsonlogger


_trace_id_context: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current request context."""
    _trace_id_context.set(trace_id)


def get_trace_id() -> Optional[str]:
    """Get the current trace ID, or None outside a request."""
    return _trace_id_context.get()


def clear_trace_id() -> None:
    """Clear the trace ID after request completes."""
    _trace_id_context.set(None)


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service name, version, environment and trace ID to every event."""
    from podcast_media.core.config import settings

    event_dict["service"] = settings.SERVICE_NAME
    event_dict["version"] = settings.VERSION
    event_dict["environment"] = settings.ENVIRONMENT

    trace_id = get_trace_id()
    if trace_id:
        event_dict["trace_id"] = trace_id

    return event_dict


def configure_structlog(debug: bool = False, json_logs: bool = True) -> None:
    """Pretty console rendering in local debug runs, JSON everywhere else."""
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]

    if debug and not json_logs:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class TraceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter for stdlib records (uvicorn, httpx, sqlalchemy...).

    Stamps the same timestamp/level/logger/trace_id fields structlog events carry.
    """

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", self.formatTime(record, self.datefmt))
        log_record["level"] = (log_record.get("level") or record.levelname).upper()
        log_record["logger"] = record.name

        trace_id = get_trace_id()
        if trace_id:
            log_record.setdefault("trace_id", trace_id)


class InfoAndBelowFilter(logging.Filter):
    """stdout gets INFO and DEBUG only."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= logging.INFO


# Client libraries that log every request at INFO/DEBUG
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "google.auth",
    "urllib3",
    "sqlalchemy.engine",
    "aiosqlite",
)


def get_logging_config(debug: bool = False, json_logs: bool = True) -> Dict[str, Any]:
    """Build the dictConfig: INFO/DEBUG to stdout, ERROR/CRITICAL to stderr."""
    from podcast_media.core.config import settings

    log_level = settings.LOG_LEVEL.upper()
    formatter = "json" if json_logs else "console"
    both = ["stdout", "stderr"]

    def route(level: str, handlers=both) -> Dict[str, Any]:
        return {"handlers": list(handlers), "level": level, "propagate": False}

    loggers = {
        "": route(log_level),
        "podcast_media": route(log_level),
        "uvicorn": route("INFO"),
        # RequestLoggingMiddleware already logs every request
        "uvicorn.access": route("CRITICAL", handlers=[]),
        "uvicorn.error": route("INFO", handlers=["stderr"]),
        "fastapi": route("INFO"),
        "asyncio": route("WARNING", handlers=["stderr"]),
    }
    loggers.update({name: route("WARNING") for name in QUIET_LOGGERS})

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "podcast_media.core.logging_config.TraceJsonFormatter",
                "format": "%(timestamp)s %(level)s %(name)s %(message)s",
            },
            "console": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "filters": {
            "info_and_below": {"()": "podcast_media.core.logging_config.InfoAndBelowFilter"},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "level": "DEBUG",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
                "filters": ["info_and_below"],
            },
            "stderr": {
                "class": "logging.StreamHandler",
                "level": "ERROR",
                "formatter": formatter,
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": loggers,
    }


def setup_logging(debug: bool = False, json_logs: bool = True) -> None:
    """Configure stdlib logging and structlog. Call once, before the app is built."""
    logging.config.dictConfig(get_logging_config(debug=debug, json_logs=json_logs))
    configure_structlog(debug=debug, json_logs=json_logs)

    get_logger(__name__).info(
        "logging_system_initialized",
        debug_mode=debug,
        json_logs=json_logs,
        log_level=logging.getLevelName(logging.root.level),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("media_saved", asset_id="123", backend_kind="LOCAL")
    """
    return structlog.get_logger(name)
