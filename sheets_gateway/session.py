"""Server-side sessions keyed by a signed cookie.

Starlette's SessionMiddleware signs the cookie and exposes ``request.session``;
the only thing kept in the cookie is an opaque session id. Tokens and client
credentials live in a ``SessionStore`` in process memory, so they never leave
the server and are gone after a restart.

A request without a valid cookie gets a transient record. The record is only
stored, and the cookie only issued, once a handler calls ``save_session``.
"""

import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from fastapi import Depends, Request
from google.oauth2.credentials import Credentials
from loguru import logger

from sheets_gateway.errors import UnauthorizedError

# Key under which the session id is kept inside the signed cookie
SESSION_ID_KEY = "sid"


@dataclass
class TokenBundle:
    """Access/refresh credentials granted by the OAuth provider."""

    access_token: str
    refresh_token: str | None = None
    id_token: str | None = None
    expiry: datetime | None = None  # naive UTC, as google-auth expects
    scopes: list[str] = field(default_factory=list)

    @classmethod
    def from_credentials(cls, credentials: Credentials) -> "TokenBundle":
        return cls(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            id_token=getattr(credentials, "id_token", None),
            expiry=credentials.expiry,
            scopes=list(credentials.scopes or []),
        )


@dataclass
class ClientConfig:
    """Per-session override of the OAuth application identity."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class PendingAuthorization:
    """Values produced by /auth/login that /auth/callback needs back."""

    state: str
    code_verifier: str | None = None


@dataclass
class SessionRecord:
    session_id: str
    created_at: datetime
    last_seen_at: datetime
    tokens: TokenBundle | None = None
    client_config: ClientConfig | None = None
    pending: PendingAuthorization | None = None

    def has_valid_token(self) -> bool:
        """Presence check only; expiry is left to the OAuth library."""
        return self.tokens is not None


class SessionStore:
    """In-memory session records with idle expiry.

    A record expires once it has been idle for longer than ``max_age``. An
    expired record is dropped when it is looked up, and every expired record
    is dropped whenever any record is saved, so abandoned sessions do not
    accumulate.
    """

    def __init__(self, max_age: timedelta) -> None:
        self._max_age = max_age
        self._records: dict[str, SessionRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._records

    def new(self) -> SessionRecord:
        """Create a record that is not stored until ``save`` is called."""
        now = datetime.now(UTC)
        return SessionRecord(
            session_id=secrets.token_urlsafe(32),
            created_at=now,
            last_seen_at=now,
        )

    def get(self, session_id: str) -> SessionRecord | None:
        record = self._records.get(session_id)
        if record is None:
            return None

        now = datetime.now(UTC)
        idle = now - record.last_seen_at
        if idle > self._max_age:
            logger.info("Session expired", extra={"idle_seconds": int(idle.total_seconds())})
            del self._records[session_id]
            return None

        record.last_seen_at = now
        return record

    def save(self, record: SessionRecord) -> None:
        now = datetime.now(UTC)
        self._sweep(now)
        record.last_seen_at = now
        self._records[record.session_id] = record

    def destroy(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    def _sweep(self, now: datetime) -> None:
        """Drop every record idle for longer than ``max_age``."""
        expired = [
            sid for sid, record in self._records.items() if now - record.last_seen_at > self._max_age
        ]
        for sid in expired:
            del self._records[sid]
        if expired:
            logger.info("Expired idle sessions", extra={"count": len(expired)})


def get_session_store(request: Request) -> SessionStore:
    """FastAPI dependency returning the store created by ``create_app``."""
    return request.app.state.session_store


def get_session(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> SessionRecord:
    """FastAPI dependency resolving the current session record.

    Returns the stored record for the cookie's session id, or a fresh
    transient record when there is none.
    """
    session_id = request.session.get(SESSION_ID_KEY)
    if session_id:
        record = store.get(session_id)
        if record is not None:
            return record
        # Signed cookie, but the record is gone (expired or restarted)
        request.session.pop(SESSION_ID_KEY, None)
    return store.new()


def save_session(request: Request, record: SessionRecord) -> None:
    """Persist ``record`` and bind it to the browser's cookie."""
    store = get_session_store(request)
    store.save(record)
    request.session[SESSION_ID_KEY] = record.session_id


def destroy_session(request: Request) -> None:
    """Drop the stored record and empty the cookie.

    SessionMiddleware expires the cookie when the session becomes empty.
    """
    session_id = request.session.get(SESSION_ID_KEY)
    if session_id:
        get_session_store(request).destroy(session_id)
    request.session.clear()


def require_session(record: SessionRecord = Depends(get_session)) -> SessionRecord:
    """Auth guard for routes that need a token set."""
    if not record.has_valid_token():
        raise UnauthorizedError()
    return record
