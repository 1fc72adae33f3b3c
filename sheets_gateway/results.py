"""Tagged handler results.

Handlers return ``Ok(value)`` or ``Err(status_code, message)`` and the route
layer turns either into a response with ``render``. Errors always use the
``{"error": message}`` envelope so clients see one shape for every failure.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result carrying the response payload."""

    value: T
    status_code: int = 200


@dataclass(frozen=True)
class Err:
    """Failed result; ``message`` is safe to show to the caller."""

    status_code: int
    message: str


Result = Ok[T] | Err


def error_body(message: str) -> dict[str, str]:
    return {"error": message}


def _encode(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    return value


def render(result: Ok[Any] | Err) -> JSONResponse:
    """Render a result as a JSON response."""
    if isinstance(result, Err):
        return JSONResponse(status_code=result.status_code, content=error_body(result.message))
    return JSONResponse(status_code=result.status_code, content=_encode(result.value))
