"""Logging configuration using loguru.

Production output is one JSON object per line using Cloud Logging field names;
development output is colored and human-readable. Standard library loggers
(uvicorn, httpx, googleapiclient) are routed through loguru, and every record
carries the id of the request that produced it.
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from typing import Any

from loguru import logger

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

SEVERITY_BY_LEVEL = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}

INTERCEPTED_LOGGERS = [
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "httpx",
    "httpcore",
    "googleapiclient.discovery",
]


def _attach_request_id(record: dict[str, Any]) -> None:
    """Patcher that copies the current request id into the record."""
    record["extra"].setdefault("request_id", request_id_ctx.get())


def serialize_record(record: dict[str, Any]) -> str:
    """Serialize a loguru record as a Cloud Logging JSON line."""
    entry: dict[str, Any] = {
        "severity": SEVERITY_BY_LEVEL.get(record["level"].name, "INFO"),
        "message": record["message"],
        "time": record["time"].isoformat(),
    }

    if record["level"].no >= 40:  # ERROR and above
        entry["logging.googleapis.com/sourceLocation"] = {
            "file": record["file"].path,
            "line": str(record["line"]),
            "function": record["function"],
        }

    if record["exception"] is not None:
        exc = record["exception"]
        tb_str = None
        if exc.traceback:
            tb_str = "".join(traceback.format_exception(exc.type, exc.value, exc.traceback))
        entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
            "traceback": tb_str,
        }

    for key, value in record.get("extra", {}).items():
        if key.startswith("_") or value is None:
            continue
        entry[key] = value

    return json.dumps(entry, default=str)


def _json_sink(message: Any) -> None:
    sys.stdout.write(serialize_record(message.record) + "\n")
    sys.stdout.flush()


def configure_logging(*, is_production: bool, log_level: str = "INFO") -> None:
    """Configure loguru for the application.

    Args:
        is_production: If True, emit JSON lines on stdout. Otherwise use
            colored output on stderr.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logger.remove()
    logger.configure(patcher=_attach_request_id)

    if is_production:
        logger.add(
            _json_sink,
            level=log_level,
            format="{message}",
            backtrace=False,
            diagnose=False,  # never dump local variables (tokens) in production
        )
    else:
        logger.add(
            sys.stderr,
            level=log_level,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "req={extra[request_id]} | "
                "<level>{message}</level>"
                "{exception}"
            ),
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    _intercept_standard_logging(log_level)


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _intercept_standard_logging(log_level: str) -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=log_level, force=True)

    for name in INTERCEPTED_LOGGERS:
        logging.getLogger(name).setLevel(log_level)
        logging.getLogger(name).handlers = [InterceptHandler()]


def set_request_context(request_id: str) -> None:
    """Set the request id for the current request."""
    request_id_ctx.set(request_id)


def clear_request_context() -> None:
    """Clear request context after request completes."""
    request_id_ctx.set(None)


__all__ = [
    "configure_logging",
    "serialize_record",
    "set_request_context",
    "clear_request_context",
    "request_id_ctx",
    "InterceptHandler",
]
