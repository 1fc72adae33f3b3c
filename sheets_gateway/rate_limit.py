"""Rate limiting for the OAuth endpoints using slowapi.

Uses per-instance memory storage, which matches the per-instance session
store. The limiter lives in its own module so route modules and ``main`` can
both import it without a cycle.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from sheets_gateway.config import Settings

DEFAULT_AUTH_RATE_LIMIT = "10/minute"

limiter = Limiter(key_func=get_remote_address)

_auth_limit = DEFAULT_AUTH_RATE_LIMIT


def configure_rate_limits(settings: Settings) -> None:
    """Apply the limits from ``settings``; called by ``create_app``."""
    global _auth_limit
    _auth_limit = settings.auth_rate_limit


def auth_rate_limit() -> str:
    """Limit string for /auth/login and /auth/callback, read at request time."""
    return _auth_limit
