"""Shared test fixtures for sheets_gateway."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from sheets_gateway.api import get_workspace_client
from sheets_gateway.auth import get_flow_factory
from sheets_gateway.config import Settings
from sheets_gateway.main import create_app
from sheets_gateway.rate_limit import limiter
from sheets_gateway.session import SessionStore
from tests.fakes import FakeFlowFactory, FakeWorkspaceClient


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """Rate limit counters are process-wide; start every test from zero."""
    limiter.reset()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="development",
        session_secret="test-session-secret-not-for-production",
        google_client_id="default-client-id.apps.googleusercontent.com",
        google_client_secret="default-client-secret",
        google_redirect_uri="http://localhost:4000/auth/callback",
        post_login_redirect="http://localhost:5173/",
        allowed_origins="http://localhost:5173",
    )


@pytest.fixture
def workspace() -> FakeWorkspaceClient:
    return FakeWorkspaceClient()


@pytest.fixture
def flow_factory() -> FakeFlowFactory:
    return FakeFlowFactory()


@pytest.fixture
def app(settings: Settings, workspace: FakeWorkspaceClient, flow_factory: FakeFlowFactory) -> FastAPI:
    app = create_app(settings)
    app.dependency_overrides[get_workspace_client] = lambda: workspace
    app.dependency_overrides[get_flow_factory] = lambda: flow_factory
    return app


@pytest.fixture
def store(app: FastAPI) -> SessionStore:
    return app.state.session_store


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def authed_client(client: TestClient) -> TestClient:
    """Client whose cookie points at a session holding a token set."""
    response = client.get("/auth/login")
    assert response.status_code == 302
    response = client.get("/auth/callback", params={"code": "good-code"})
    assert response.status_code == 302
    return client
