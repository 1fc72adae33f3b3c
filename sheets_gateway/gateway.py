"""Read-only queries proxied to Google on behalf of a signed-in user.

Each operation takes a ``WorkspaceClientProtocol`` and returns a tagged
result. Upstream failures are logged in full here and reported to the caller
with a generic message only.

Preview failures are handled differently per endpoint: a failing preview in
the spreadsheet listing only blanks that one file, while a failing batch in
the tab listing blanks every tab.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from sheets_gateway.results import Err, Ok, Result
from sheets_gateway.schemas import (
    FileSummary,
    Preview,
    SheetsPage,
    SheetsQuery,
    TabsPage,
    TabSummary,
    UserInfo,
)
from sheets_gateway.workspace import SPREADSHEET_MIME_TYPE, WorkspaceClientProtocol

PREVIEW_RANGE = "A1:E3"

FILE_FIELDS = "files(id,name,owners,modifiedTime),nextPageToken"
CURSOR_FIELDS = "nextPageToken"
FILE_ORDER = "modifiedTime desc"
TAB_FIELDS = "sheets(properties(sheetId,title,index))"

# Type of the callback that fetches the token following a given cursor
NextTokenFetcher = Callable[[str | None], Awaitable[str | None]]


def escape_query_literal(value: str) -> str:
    """Escape single quotes for a Drive ``q`` string literal."""
    return value.replace("'", "\\'")


def build_drive_query(name_filter: str = "") -> str:
    """Drive filter matching non-trashed spreadsheets, optionally by name."""
    q = f"mimeType='{SPREADSHEET_MIME_TYPE}' and trashed=false"
    if name_filter:
        q += f" and name contains '{escape_query_literal(name_filter)}'"
    return q


def quote_sheet_title(title: str) -> str:
    """Quote a tab title for A1 notation, doubling embedded single quotes."""
    return "'" + title.replace("'", "''") + "'"


def tab_preview_range(title: str) -> str:
    return f"{quote_sheet_title(title)}!{PREVIEW_RANGE}"


async def advance_cursor(fetch_next_token: NextTokenFetcher, steps: int) -> str | None:
    """Walk a token-paginated listing forward ``steps`` pages.

    Returns the cursor that fetches page ``steps + 1``. If the listing runs
    out first, returns the cursor of the last page that exists, so the
    caller gets that page instead of wrapping back to the first.
    """
    cursor: str | None = None
    for _ in range(steps):
        next_token = await fetch_next_token(cursor)
        if not next_token:
            break
        cursor = next_token
    return cursor


async def fetch_current_user(client: WorkspaceClientProtocol) -> Result[UserInfo]:
    try:
        me = await client.get_userinfo()
    except Exception:
        logger.exception("Failed to fetch user info")
        return Err(500, "Failed to fetch user info")

    return Ok(
        UserInfo(
            id=me.get("id"),
            name=me.get("name"),
            email=me.get("email"),
            photo=me.get("picture"),
        )
    )


async def _file_preview(client: WorkspaceClientProtocol, file_id: str) -> Preview:
    """Best-effort preview; any failure yields an empty grid."""
    try:
        response = await client.get_values(file_id, PREVIEW_RANGE)
    except Exception as e:
        logger.debug("Preview unavailable", extra={"spreadsheet_id": file_id, "error": str(e)})
        return []
    return response.get("values") or []


async def _summarize_file(client: WorkspaceClientProtocol, file: dict[str, Any]) -> FileSummary:
    owners = [o.get("displayName") for o in file.get("owners") or []]
    return FileSummary(
        id=file["id"],
        name=file.get("name"),
        owners=[name for name in owners if name],
        modified_time=file.get("modifiedTime"),
        preview=await _file_preview(client, file["id"]),
    )


async def list_spreadsheets(
    client: WorkspaceClientProtocol,
    params: SheetsQuery,
) -> Result[SheetsPage]:
    """List one page of the user's spreadsheets with a preview of each.

    Drive has no page-N addressing, so reaching page N costs N-1 extra
    listing calls to walk the page tokens.
    """
    q = build_drive_query(params.query)

    async def next_token(cursor: str | None) -> str | None:
        response = await client.list_files(
            query=q,
            page_size=params.page_size,
            page_token=cursor,
            fields=CURSOR_FIELDS,
            order_by=FILE_ORDER,
        )
        return response.get("nextPageToken")

    try:
        cursor = await advance_cursor(next_token, params.page - 1)
        response = await client.list_files(
            query=q,
            page_size=params.page_size,
            page_token=cursor,
            fields=FILE_FIELDS,
            order_by=FILE_ORDER,
        )
    except Exception:
        logger.exception("Failed to list sheets", extra={"page": params.page})
        return Err(500, "Failed to list sheets")

    files = response.get("files") or []
    items = await asyncio.gather(*(_summarize_file(client, f) for f in files))

    # Drive exposes no total count; report the size of this page
    return Ok(SheetsPage(items=list(items), total=len(items)))


async def list_tabs(client: WorkspaceClientProtocol, spreadsheet_id: str) -> Result[TabsPage]:
    """List the tabs of a spreadsheet with a preview of each."""
    try:
        meta = await client.get_spreadsheet(spreadsheet_id, TAB_FIELDS)
    except Exception:
        logger.exception("Failed to fetch inner sheets", extra={"spreadsheet_id": spreadsheet_id})
        return Err(500, "Failed to fetch inner sheets")

    props = [s["properties"] for s in meta.get("sheets") or [] if s.get("properties")]
    if not props:
        return Ok(TabsPage(items=[]))

    ranges = [tab_preview_range(str(p.get("title", ""))) for p in props]
    try:
        batch = await client.batch_get_values(spreadsheet_id, ranges)
        value_ranges = batch.get("valueRanges") or []
    except Exception as e:
        # The whole batch fails together; every tab loses its preview
        logger.debug(
            "Tab previews unavailable",
            extra={"spreadsheet_id": spreadsheet_id, "error": str(e)},
        )
        value_ranges = []

    items = []
    for idx, p in enumerate(props):
        preview = (value_ranges[idx].get("values") or []) if idx < len(value_ranges) else []
        items.append(TabSummary(title=p.get("title"), gid=p.get("sheetId"), preview=preview))

    return Ok(TabsPage(items=items))
