"""Tests for the authenticated /api endpoints."""

from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient
from google.oauth2.credentials import Credentials

from sheets_gateway import api
from sheets_gateway.config import Settings
from sheets_gateway.gateway import CURSOR_FIELDS, FILE_FIELDS, FILE_ORDER
from sheets_gateway.session import SessionRecord, TokenBundle
from tests.fakes import FakeWorkspaceClient, make_file


class TestAuthGuard:
    """Every /api route requires a session holding tokens."""

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("GET", "/api/me"),
            ("GET", "/api/sheets"),
            ("POST", "/api/sheets/abc/refresh"),
            ("GET", "/api/sheets/abc/tabs"),
        ],
    )
    def test_unauthorized_without_session(self, client: TestClient, method: str, path: str) -> None:
        response = client.request(method, path)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_pending_login_is_not_enough(self, client: TestClient) -> None:
        client.get("/auth/login")

        response = client.get("/api/me")

        assert response.status_code == 401

    def test_guard_runs_before_validation(self, client: TestClient) -> None:
        response = client.get("/api/sheets", params={"pageSize": 500})

        assert response.status_code == 401


class TestMe:
    """Tests for GET /api/me."""

    def test_returns_profile(self, authed_client: TestClient) -> None:
        response = authed_client.get("/api/me")

        assert response.status_code == 200
        assert response.json() == {
            "id": "1234567890",
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "photo": "https://lh3.example.com/ada.png",
        }

    def test_upstream_failure(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        workspace.set_fail_userinfo(True)

        response = authed_client.get("/api/me")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch user info"}


class TestListSheets:
    """Tests for GET /api/sheets."""

    def test_first_page_single_listing_call(
        self, authed_client: TestClient, workspace: FakeWorkspaceClient
    ) -> None:
        workspace.set_files([make_file("a"), make_file("b")], [make_file("c")])
        workspace.values["a"] = [["Name", "Qty"], ["Pen", 3]]

        response = authed_client.get("/api/sheets")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [item["id"] for item in data["items"]] == ["a", "b"]
        assert data["items"][0] == {
            "id": "a",
            "name": "Sheet a",
            "owners": ["Ada"],
            "modifiedTime": "2024-05-01T10:00:00.000Z",
            "preview": [["Name", "Qty"], ["Pen", 3]],
        }
        assert data["items"][1]["preview"] == []

        assert len(workspace.list_calls) == 1
        call = workspace.list_calls[0]
        assert call["page_token"] is None
        assert call["page_size"] == 12
        assert call["fields"] == FILE_FIELDS
        assert call["order_by"] == FILE_ORDER
        assert call["query"] == (
            "mimeType='application/vnd.google-apps.spreadsheet' and trashed=false"
        )

    def test_previews_use_fixed_range(
        self, authed_client: TestClient, workspace: FakeWorkspaceClient
    ) -> None:
        workspace.set_files([make_file("a"), make_file("b")])

        authed_client.get("/api/sheets")

        assert sorted(workspace.value_calls) == [("a", "A1:E3"), ("b", "A1:E3")]

    def test_second_page_walks_one_cursor(
        self, authed_client: TestClient, workspace: FakeWorkspaceClient
    ) -> None:
        workspace.set_files([make_file("a")], [make_file("b")], [make_file("c")])

        response = authed_client.get("/api/sheets", params={"page": 2, "pageSize": 1})

        assert [item["id"] for item in response.json()["items"]] == ["b"]
        assert len(workspace.list_calls) == 2
        walk, final = workspace.list_calls
        assert walk["page_token"] is None
        assert walk["fields"] == CURSOR_FIELDS
        assert walk["page_size"] == 1
        assert final["page_token"] == "token-2"
        assert final["fields"] == FILE_FIELDS

    def test_page_past_end_returns_last_page(
        self, authed_client: TestClient, workspace: FakeWorkspaceClient
    ) -> None:
        workspace.set_files([make_file("a")], [make_file("b")])

        response = authed_client.get("/api/sheets", params={"page": 5, "pageSize": 1})

        assert response.status_code == 200
        assert [item["id"] for item in response.json()["items"]] == ["b"]
        # Walk stops as soon as the listing runs out of tokens
        assert [c["page_token"] for c in workspace.list_calls] == [None, "token-2", "token-2"]

    def test_one_failing_preview(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        workspace.set_files([make_file("a"), make_file("b"), make_file("c")])
        for file_id in ("a", "b", "c"):
            workspace.values[file_id] = [[file_id.upper()]]
        workspace.failing_previews.add("b")

        response = authed_client.get("/api/sheets")

        assert response.status_code == 200
        previews = {item["id"]: item["preview"] for item in response.json()["items"]}
        assert previews == {"a": [["A"]], "b": [], "c": [["C"]]}

    def test_query_is_escaped(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        authed_client.get("/api/sheets", params={"query": "Bob's budget"})

        assert workspace.list_calls[0]["query"].endswith(" and name contains 'Bob\\'s budget'")

    def test_drops_missing_owner_names(
        self, authed_client: TestClient, workspace: FakeWorkspaceClient
    ) -> None:
        workspace.set_files([make_file("a", owner=None), make_file("b", owner="")])

        response = authed_client.get("/api/sheets")

        assert [item["owners"] for item in response.json()["items"]] == [[], []]

    @pytest.mark.parametrize(
        "params",
        [{"pageSize": 51}, {"pageSize": 0}, {"page": 0}, {"page": "two"}],
    )
    def test_invalid_paging(
        self, authed_client: TestClient, workspace: FakeWorkspaceClient, params: dict
    ) -> None:
        response = authed_client.get("/api/sheets", params=params)

        assert response.status_code == 400
        assert next(iter(params)) in response.json()["error"]
        assert workspace.list_calls == []

    def test_max_page_size_accepted(
        self, authed_client: TestClient, workspace: FakeWorkspaceClient
    ) -> None:
        response = authed_client.get("/api/sheets", params={"pageSize": 50})

        assert response.status_code == 200
        assert workspace.list_calls[0]["page_size"] == 50

    def test_listing_failure(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        workspace.set_fail_list(True)

        response = authed_client.get("/api/sheets")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to list sheets"}


class TestRefresh:
    """Tests for POST /api/sheets/{id}/refresh."""

    def test_acknowledges(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        response = authed_client.post("/api/sheets/abc/refresh")

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert workspace.list_calls == []
        assert workspace.value_calls == []


class TestListTabs:
    """Tests for GET /api/sheets/{id}/tabs."""

    def test_tabs_with_previews(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        workspace.set_tabs("abc", "Summary", "Data")
        workspace.tab_values["'Data'!A1:E3"] = [["x", "y"]]

        response = authed_client.get("/api/sheets/abc/tabs")

        assert response.status_code == 200
        assert response.json() == {
            "items": [
                {"title": "Summary", "gid": 100, "preview": []},
                {"title": "Data", "gid": 101, "preview": [["x", "y"]]},
            ]
        }
        assert workspace.batch_calls == [("abc", ["'Summary'!A1:E3", "'Data'!A1:E3"])]

    def test_no_tabs_skips_batch(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        workspace.spreadsheets["abc"] = {"sheets": []}

        response = authed_client.get("/api/sheets/abc/tabs")

        assert response.status_code == 200
        assert response.json() == {"items": []}
        assert workspace.batch_calls == []

    def test_titles_are_quoted(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        workspace.set_tabs("abc", "Q1 'draft'")

        authed_client.get("/api/sheets/abc/tabs")

        assert workspace.batch_calls[0][1] == ["'Q1 ''draft'''!A1:E3"]

    def test_batch_failure_blanks_every_preview(
        self, authed_client: TestClient, workspace: FakeWorkspaceClient
    ) -> None:
        workspace.set_tabs("abc", "One", "Two")
        workspace.tab_values["'One'!A1:E3"] = [["1"]]
        workspace.set_fail_batch(True)

        response = authed_client.get("/api/sheets/abc/tabs")

        assert response.status_code == 200
        assert [item["preview"] for item in response.json()["items"]] == [[], []]

    def test_metadata_failure(self, authed_client: TestClient, workspace: FakeWorkspaceClient) -> None:
        workspace.set_fail_metadata(True)

        response = authed_client.get("/api/sheets/abc/tabs")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch inner sheets"}
        assert workspace.batch_calls == []


class FakeCredentialClient:
    """Captures the credentials the dependency builds."""

    def __init__(self, credentials: Credentials) -> None:
        self.credentials = credentials


class TestWorkspaceClientDependency:
    """Tests for the per-request client dependency."""

    @pytest.fixture
    def record(self) -> SessionRecord:
        now = datetime.now(UTC)
        return SessionRecord(
            session_id="sid-1",
            created_at=now,
            last_seen_at=now,
            tokens=TokenBundle(access_token="old-token", refresh_token="refresh-1"),
        )

    @pytest.fixture(autouse=True)
    def fake_client(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(api, "WorkspaceClient", FakeCredentialClient)

    @pytest.mark.asyncio
    async def test_credentials_from_session(self, record: SessionRecord, settings: Settings) -> None:
        gen = api.get_workspace_client(record, settings)
        client = await anext(gen)

        assert client.credentials.token == "old-token"
        assert client.credentials.refresh_token == "refresh-1"
        assert client.credentials.client_id == settings.google_client_id

        with pytest.raises(StopAsyncIteration):
            await anext(gen)
        assert record.tokens.access_token == "old-token"

    @pytest.mark.asyncio
    async def test_refreshed_token_saved(self, record: SessionRecord, settings: Settings) -> None:
        gen = api.get_workspace_client(record, settings)
        client = await anext(gen)

        # What google-auth does when it refreshes an expired token
        client.credentials.token = "new-token"

        with pytest.raises(StopAsyncIteration):
            await anext(gen)
        assert record.tokens.access_token == "new-token"
        assert record.tokens.refresh_token == "refresh-1"
