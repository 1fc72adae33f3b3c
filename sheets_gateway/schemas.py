"""Request and response models.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Each preview is a small grid of cell values: rows of columns
Preview = list[list[Any]]

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 12


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Requests
# =============================================================================


class ClientConfigIn(CamelModel):
    """Body of POST /auth/client-config. Unknown fields are dropped."""

    client_id: str = Field(min_length=10)
    client_secret: str = Field(min_length=10)
    redirect_uri: str = ""

    @field_validator("redirect_uri")
    @classmethod
    def validate_redirect_uri(cls, v: str) -> str:
        """Empty means "use the default"; anything else must be a URI."""
        if not v:
            return v
        parsed = urlparse(v)
        if not parsed.scheme or not (parsed.netloc or parsed.path):
            raise ValueError("must be a valid uri")
        return v


class SheetsQuery(BaseModel):
    """Validated parameters of GET /api/sheets."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    query: str = ""


# =============================================================================
# Responses
# =============================================================================


class ClientConfigView(CamelModel):
    redirect_uri: str


class ClientConfigStatus(CamelModel):
    configured: bool
    config: ClientConfigView | None = None


class ClientConfigSaved(CamelModel):
    ok: bool = True
    redirect_uri: str


class UserInfo(CamelModel):
    id: str | None = None
    name: str | None = None
    email: str | None = None
    photo: str | None = None


class FileSummary(CamelModel):
    id: str
    name: str | None = None
    owners: list[str] = Field(default_factory=list)
    modified_time: str | None = None
    preview: Preview = Field(default_factory=list)


class SheetsPage(CamelModel):
    items: list[FileSummary]
    total: int


class TabSummary(CamelModel):
    title: str | None = None
    gid: int | None = None
    preview: Preview = Field(default_factory=list)


class TabsPage(CamelModel):
    items: list[TabSummary]
