"""Exceptions raised outside handler bodies and their HTTP translation.

Handler bodies return ``Err`` results. Failures detected before a handler
runs (the auth guard, request validation, routing, rate limiting) or escaping
it unexpectedly are raised instead, and the handlers registered here render
them with the same error envelope.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from sheets_gateway.results import Err, render


class GatewayError(Exception):
    """Base exception carrying an HTTP status and a client-safe message."""

    status_code = 500
    message = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class UnauthorizedError(GatewayError):
    """Raised by the auth guard when the session holds no tokens."""

    status_code = 401
    message = "Unauthorized"


def format_validation_errors(exc: RequestValidationError) -> str:
    """Collapse pydantic error details into one human-readable line.

    The location prefix (``query``, ``body``) is dropped so messages name
    the field as the client sent it, e.g. ``pageSize: Input should be ...``.
    """
    parts = []
    for error in exc.errors():
        loc = [str(p) for p in error.get("loc", ()) if p not in ("query", "body", "path")]
        field = ".".join(loc)
        msg = error.get("msg", "Invalid value")
        parts.append(f"{field}: {msg}" if field else msg)
    return "; ".join(parts) or "Invalid request"


async def gateway_error_handler(_request: Request, exc: GatewayError) -> JSONResponse:
    return render(Err(exc.status_code, exc.message))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = format_validation_errors(exc)
    logger.info("Request rejected by validation", extra={"path": request.url.path, "error": message})
    return render(Err(400, message))


async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return render(Err(exc.status_code, str(exc.detail)))


def rate_limit_exceeded_handler(request: Request, _exc: Exception) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    logger.warning(
        "Rate limit exceeded",
        extra={"path": request.url.path, "client": get_remote_address(request)},
    )
    return render(Err(429, "Rate limit exceeded. Please try again later."))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for unhandled exceptions."""
    logger.opt(exception=exc).error(
        "Unhandled exception",
        extra={"path": request.url.path},
    )
    return render(Err(500, "Internal Server Error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
