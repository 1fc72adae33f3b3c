"""Sheets Gateway.

Backend for the spreadsheet browser UI: signs users in with Google, keeps
their tokens in a server-side session and proxies read-only Drive and Sheets
queries.
"""

import html
import secrets
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware

from sheets_gateway import api, auth, health
from sheets_gateway.config import Settings, get_settings
from sheets_gateway.errors import register_exception_handlers
from sheets_gateway.logging import clear_request_context, configure_logging, set_request_context
from sheets_gateway.rate_limit import configure_rate_limits, limiter
from sheets_gateway.session import SessionStore


class LoggingMiddleware(BaseHTTPMiddleware):
    """Assign a request id and log every request with its outcome."""

    async def dispatch(self, request: Request, call_next):
        set_request_context(secrets.token_hex(8))

        logger.info(
            f"{request.method} {request.url.path}",
            extra={"method": request.method, "path": request.url.path},
        )

        try:
            response = await call_next(request)
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={"status_code": response.status_code},
            )
            return response
        except Exception:
            logger.error(f"{request.method} {request.url.path} failed")
            raise
        finally:
            clear_request_context()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: Settings = app.state.settings

    logger.info(
        f"Starting Sheets Gateway on port {settings.port}",
        extra={
            "environment": settings.environment,
            "default_client_configured": bool(settings.google_client_id),
        },
    )

    yield

    logger.info(
        "Shutting down Sheets Gateway",
        extra={"sessions_dropped": len(app.state.session_store)},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment-derived ones.
            They are also served to every ``Depends(get_settings)`` and
            set the rate limits.
    """
    override = settings is not None
    settings = settings or get_settings()

    configure_logging(
        is_production=settings.is_production,
        log_level="DEBUG" if settings.debug else settings.log_level,
    )

    app = FastAPI(
        title="Sheets Gateway",
        description="Google sign-in and read-only Drive/Sheets proxy for the spreadsheet browser",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
    )

    if override:
        app.dependency_overrides[get_settings] = lambda: settings

    app.state.settings = settings
    app.state.session_store = SessionStore(max_age=timedelta(seconds=settings.session_max_age))
    app.state.limiter = limiter
    configure_rate_limits(settings)

    register_exception_handlers(app)

    # Signed cookie carrying only the session id
    app.add_middleware(
        SessionMiddleware,  # type: ignore[arg-type]
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=settings.is_production,
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it is outermost and sees every request
    app.add_middleware(LoggingMiddleware)  # type: ignore[arg-type]

    app.include_router(health.router, prefix="/api")
    app.include_router(auth.router)
    app.include_router(api.router)

    @app.get("/", response_class=HTMLResponse)
    async def home() -> HTMLResponse:
        ui = html.escape(settings.post_login_redirect, quote=True)
        return HTMLResponse(f'OK. Open the UI at <a href="{ui}">{ui}</a>.')

    return app


app = create_app()


def run() -> None:
    """Console script entry point."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sheets_gateway.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
    )


if __name__ == "__main__":
    run()
