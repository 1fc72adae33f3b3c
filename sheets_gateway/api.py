"""Authenticated REST endpoints.

Every route in this router requires a session holding a token set. The
business logic lives in ``gateway``; routes only parse input and render the
result.

Endpoints:
- GET  /api/me                      - signed-in user's profile
- GET  /api/sheets                  - one page of spreadsheets with previews
- POST /api/sheets/{id}/refresh     - no-op kept for client compatibility
- GET  /api/sheets/{id}/tabs        - tabs of a spreadsheet with previews
"""

from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from loguru import logger

from sheets_gateway import gateway
from sheets_gateway.config import Settings, get_settings
from sheets_gateway.oauth import build_credentials, refreshed_tokens, resolve_client_config
from sheets_gateway.results import Ok, render
from sheets_gateway.schemas import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, SheetsQuery
from sheets_gateway.session import SessionRecord, require_session
from sheets_gateway.workspace import WorkspaceClient, WorkspaceClientProtocol

router = APIRouter(prefix="/api", tags=["api"], dependencies=[Depends(require_session)])


async def get_workspace_client(
    record: SessionRecord = Depends(require_session),
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[WorkspaceClientProtocol]:
    """FastAPI dependency yielding a Google client for the session's user.

    An access token refreshed by google-auth while serving the request is
    saved back into the session afterwards.
    """
    config = resolve_client_config(record, settings)
    credentials = build_credentials(record.tokens, config)  # type: ignore[arg-type]

    yield WorkspaceClient(credentials)

    if record.tokens is not None:
        updated = refreshed_tokens(record.tokens, credentials)
        if updated is not None:
            record.tokens = updated
            logger.info("Stored refreshed access token")


@router.get("/me")
async def me(client: WorkspaceClientProtocol = Depends(get_workspace_client)) -> JSONResponse:
    return render(await gateway.fetch_current_user(client))


@router.get("/sheets")
async def list_sheets(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    query: str = Query(""),
    client: WorkspaceClientProtocol = Depends(get_workspace_client),
) -> JSONResponse:
    params = SheetsQuery(page=page, page_size=page_size, query=query)
    return render(await gateway.list_spreadsheets(client, params))


@router.post("/sheets/{spreadsheet_id}/refresh")
async def refresh_sheet(spreadsheet_id: str) -> JSONResponse:
    # Nothing is cached server-side, so there is nothing to invalidate
    return render(Ok({"ok": True}))


@router.get("/sheets/{spreadsheet_id}/tabs")
async def list_sheet_tabs(
    spreadsheet_id: str,
    client: WorkspaceClientProtocol = Depends(get_workspace_client),
) -> JSONResponse:
    return render(await gateway.list_tabs(client, spreadsheet_id))
