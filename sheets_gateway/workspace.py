"""Async facade over the Google Drive, Sheets and OAuth2 APIs.

google-api-python-client is synchronous and its httplib2 transport is not
thread-safe, so every call runs in a worker thread with its own
``AuthorizedHttp``. The credentials object is shared, which lets a token
refreshed by one call be reused (and saved) by the next.
"""

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

import google_auth_httplib2
import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"


class WorkspaceClientProtocol(Protocol):
    """Remote operations the gateway needs."""

    async def get_userinfo(self) -> dict[str, Any]: ...

    async def list_files(
        self,
        *,
        query: str,
        page_size: int,
        page_token: str | None,
        fields: str,
        order_by: str,
    ) -> dict[str, Any]: ...

    async def get_values(self, spreadsheet_id: str, range_: str) -> dict[str, Any]: ...

    async def get_spreadsheet(self, spreadsheet_id: str, fields: str) -> dict[str, Any]: ...

    async def batch_get_values(self, spreadsheet_id: str, ranges: list[str]) -> dict[str, Any]: ...


class WorkspaceClient:
    """Google API client bound to one user's credentials.

    Args:
        credentials: User credentials built from the session's token bundle.
        service_builder: Factory with the signature of
            ``googleapiclient.discovery.build``; injectable for tests.
    """

    def __init__(
        self,
        credentials: Credentials,
        service_builder: Callable[..., Any] = build,
    ) -> None:
        self._credentials = credentials
        # Discovery documents are bundled with the library, no network here
        self._drive = service_builder("drive", "v3", credentials=credentials, cache_discovery=False)
        self._sheets = service_builder("sheets", "v4", credentials=credentials, cache_discovery=False)
        self._oauth2 = service_builder("oauth2", "v2", credentials=credentials, cache_discovery=False)

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def _http(self) -> google_auth_httplib2.AuthorizedHttp:
        return google_auth_httplib2.AuthorizedHttp(self._credentials, http=httplib2.Http())

    async def _execute(self, request: Any) -> dict[str, Any]:
        return await asyncio.to_thread(request.execute, http=self._http())

    async def get_userinfo(self) -> dict[str, Any]:
        return await self._execute(self._oauth2.userinfo().get())

    async def list_files(
        self,
        *,
        query: str,
        page_size: int,
        page_token: str | None,
        fields: str,
        order_by: str,
    ) -> dict[str, Any]:
        request = self._drive.files().list(
            q=query,
            pageSize=page_size,
            pageToken=page_token,
            fields=fields,
            orderBy=order_by,
        )
        return await self._execute(request)

    async def get_values(self, spreadsheet_id: str, range_: str) -> dict[str, Any]:
        request = self._sheets.spreadsheets().values().get(spreadsheetId=spreadsheet_id, range=range_)
        return await self._execute(request)

    async def get_spreadsheet(self, spreadsheet_id: str, fields: str) -> dict[str, Any]:
        request = self._sheets.spreadsheets().get(spreadsheetId=spreadsheet_id, fields=fields)
        return await self._execute(request)

    async def batch_get_values(self, spreadsheet_id: str, ranges: list[str]) -> dict[str, Any]:
        request = (
            self._sheets.spreadsheets()
            .values()
            .batchGet(spreadsheetId=spreadsheet_id, ranges=ranges)
        )
        return await self._execute(request)
