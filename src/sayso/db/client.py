"""
sayso - Supabase Client.

Low-level database access. All profile and onboarding queries go through here.
"""

from supabase import Client, create_client

from sayso.config import settings
from sayso.db.request_context import get_access_token

# Singleton client instance
_service_client: Client | None = None


def get_service_client() -> Client:
    """
    Get the service-role Supabase client.

    Bypasses row level security. Only use from server code that has
    already scoped the query to the authenticated user.
    """
    global _service_client

    if _service_client is None:
        _service_client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )

    return _service_client


def get_authenticated_client(access_token: str | None = None) -> Client:
    """
    Get a client that acts as the current user.

    Falls back to the request context token when none is passed.
    A fresh client is created per call so tokens never leak between requests.
    """
    token = access_token or get_access_token()
    client = create_client(settings.supabase_url, settings.supabase_anon_key)
    if token:
        client.postgrest.auth(token)
    return client
