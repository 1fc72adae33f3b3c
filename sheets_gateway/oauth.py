"""OAuth client construction.

Resolves which OAuth application a session talks to and builds the
google-auth-oauthlib flow (for login) or google-auth credentials (for API
calls) from it. Nothing here performs I/O.
"""

from dataclasses import dataclass, replace

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from sheets_gateway.config import Settings
from sheets_gateway.session import SessionRecord, TokenBundle

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Full URLs for email/profile: Google echoes these back on the token response,
# and oauthlib rejects a token whose scopes differ from the requested ones.
OAUTH_SCOPES = [
    "https://www.googleapis.com/auth/drive.metadata.readonly",
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


@dataclass(frozen=True)
class OAuthClientConfig:
    client_id: str
    client_secret: str
    redirect_uri: str

    @property
    def is_complete(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


def resolve_client_config(record: SessionRecord | None, settings: Settings) -> OAuthClientConfig:
    """Pick the OAuth application for a session.

    Each field falls back to the process default on its own, so a session
    that only overrides the client id keeps the default secret and
    redirect URI.
    """
    override = record.client_config if record is not None else None
    if override is None:
        return OAuthClientConfig(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
        )
    return OAuthClientConfig(
        client_id=override.client_id or settings.google_client_id,
        client_secret=override.client_secret or settings.google_client_secret,
        redirect_uri=override.redirect_uri or settings.google_redirect_uri,
    )


def create_oauth_flow(config: OAuthClientConfig, code_verifier: str | None = None) -> Flow:
    """Create a Google OAuth web flow for ``config``.

    ``code_verifier`` restores the PKCE verifier of the flow that built the
    authorization URL, when the library generated one.
    """
    client_config = {
        "web": {
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [config.redirect_uri],
        }
    }

    flow = Flow.from_client_config(
        client_config,
        scopes=OAUTH_SCOPES,
        redirect_uri=config.redirect_uri,
    )
    if code_verifier:
        flow.code_verifier = code_verifier
    return flow


def build_credentials(tokens: TokenBundle, config: OAuthClientConfig) -> Credentials:
    """Build refreshable user credentials from a stored token bundle.

    With a refresh token present, google-auth refreshes an expired access
    token on first use.
    """
    return Credentials(
        token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        id_token=tokens.id_token,
        token_uri=GOOGLE_TOKEN_URI,
        client_id=config.client_id,
        client_secret=config.client_secret,
        scopes=tokens.scopes or None,
        expiry=tokens.expiry,
    )


def refreshed_tokens(tokens: TokenBundle, credentials: Credentials) -> TokenBundle | None:
    """Return an updated bundle if ``credentials`` were refreshed, else None."""
    if not credentials.token or credentials.token == tokens.access_token:
        return None
    return replace(
        tokens,
        access_token=credentials.token,
        refresh_token=credentials.refresh_token or tokens.refresh_token,
        expiry=credentials.expiry,
    )
