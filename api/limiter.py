"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and api/routes/v1/auth.py
(to apply per-route limits with @limiter.limit()).

A single shared instance keeps one in-memory counter store. Separate
instances per module would each count on their own and never trigger.

The login limit is passed to slowapi as a callable, so it is read on every
request and follows whatever create_app() configured from LOGIN_RATE_LIMIT.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

DEFAULT_LOGIN_RATE_LIMIT = "10/minute"

_login_rate_limit = DEFAULT_LOGIN_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def configure_login_rate_limit(value: str) -> None:
    global _login_rate_limit
    _login_rate_limit = value


def login_rate_limit() -> str:
    return _login_rate_limit
