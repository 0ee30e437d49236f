"""
sayso - Request Context.

The bearer token of the request being served, set once by the auth
dependency and read by the per-user Supabase client.
"""

from contextvars import ContextVar

_access_token: ContextVar[str | None] = ContextVar("access_token", default=None)


def set_request_context(access_token: str | None = None) -> None:
    """Record the caller's validated token for the rest of the request."""
    if access_token:
        _access_token.set(access_token)


def get_access_token() -> str | None:
    return _access_token.get()
