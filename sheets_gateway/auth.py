"""OAuth login flow and per-session client configuration.

Endpoints:
- GET  /auth/login          - redirect to Google's consent screen
- GET  /auth/callback       - exchange the authorization code for tokens
- GET  /auth/logout         - drop the session and its cookie
- GET  /auth/client-config  - report whether a session OAuth client is set
- POST /auth/client-config  - set the session OAuth client

The flow state lives entirely in the session record: ``pending`` after login,
``tokens`` after a successful callback, nothing after logout.
"""

import asyncio
from collections.abc import Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from google_auth_oauthlib.flow import Flow
from loguru import logger

from sheets_gateway.config import Settings, get_settings
from sheets_gateway.oauth import create_oauth_flow, resolve_client_config
from sheets_gateway.rate_limit import auth_rate_limit, limiter
from sheets_gateway.results import Err, Ok, render
from sheets_gateway.schemas import (
    ClientConfigIn,
    ClientConfigSaved,
    ClientConfigStatus,
    ClientConfigView,
)
from sheets_gateway.session import (
    ClientConfig,
    PendingAuthorization,
    SessionRecord,
    TokenBundle,
    destroy_session,
    get_session,
    save_session,
)

FlowFactory = Callable[..., Flow]

router = APIRouter(prefix="/auth", tags=["auth"])


def get_flow_factory() -> FlowFactory:
    """FastAPI dependency returning the OAuth flow constructor."""
    return create_oauth_flow


@router.get("/login")
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    record: SessionRecord = Depends(get_session),
    settings: Settings = Depends(get_settings),
    flow_factory: FlowFactory = Depends(get_flow_factory),
) -> RedirectResponse:
    """Redirect the browser to Google's authorization page."""
    config = resolve_client_config(record, settings)
    if not config.is_complete:
        logger.warning("OAuth client is not fully configured; login will likely fail")

    flow = flow_factory(config)
    authorization_url, state = flow.authorization_url(
        access_type="offline",
        prompt="consent",
    )

    record.pending = PendingAuthorization(
        state=state,
        code_verifier=getattr(flow, "code_verifier", None),
    )
    save_session(request, record)

    logger.info("Starting OAuth flow", extra={"session_client": record.client_config is not None})
    return RedirectResponse(url=authorization_url, status_code=302)


@router.get("/callback", response_model=None)
@limiter.limit(auth_rate_limit)
async def callback(
    request: Request,
    code: str | None = None,
    record: SessionRecord = Depends(get_session),
    settings: Settings = Depends(get_settings),
    flow_factory: FlowFactory = Depends(get_flow_factory),
) -> Response:
    """Exchange the authorization code and store the tokens in the session."""
    if not code:
        return render(Err(400, "Missing code"))

    config = resolve_client_config(record, settings)
    code_verifier = record.pending.code_verifier if record.pending else None
    flow = flow_factory(config, code_verifier=code_verifier)

    # Token exchange is a blocking HTTP call in requests-oauthlib
    try:
        await asyncio.to_thread(flow.fetch_token, code=code)
        tokens = TokenBundle.from_credentials(flow.credentials)
    except Exception:
        logger.exception("OAuth token exchange failed")
        return render(Err(500, "OAuth callback failed"))

    record.tokens = tokens
    record.pending = None
    save_session(request, record)

    logger.info(
        "OAuth callback successful",
        extra={"offline_access": tokens.refresh_token is not None},
    )
    return RedirectResponse(url=settings.post_login_redirect, status_code=302)


@router.get("/logout")
async def logout(request: Request) -> RedirectResponse:
    destroy_session(request)
    logger.info("Session destroyed")
    return RedirectResponse(url="/", status_code=302)


@router.get("/client-config")
async def get_client_config(record: SessionRecord = Depends(get_session)) -> JSONResponse:
    """Report the session's OAuth client without revealing its secret."""
    client_config = record.client_config
    if client_config is None or not client_config.is_configured:
        return render(Ok(ClientConfigStatus(configured=False, config=None)))

    return render(
        Ok(
            ClientConfigStatus(
                configured=True,
                config=ClientConfigView(redirect_uri=client_config.redirect_uri),
            )
        )
    )


@router.post("/client-config")
async def set_client_config(
    request: Request,
    body: ClientConfigIn,
    record: SessionRecord = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Use a different OAuth application for this session."""
    redirect_uri = body.redirect_uri or settings.google_redirect_uri
    record.client_config = ClientConfig(
        client_id=body.client_id,
        client_secret=body.client_secret,
        redirect_uri=redirect_uri,
    )
    save_session(request, record)

    logger.info("Session OAuth client configured", extra={"redirect_uri": redirect_uri})
    return render(Ok(ClientConfigSaved(redirect_uri=redirect_uri)))
