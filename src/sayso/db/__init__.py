"""
sayso - Database Client.

Provides Supabase access for profiles and onboarding selections.
"""

from sayso.db.client import get_service_client, get_authenticated_client

__all__ = [
    "get_service_client",
    "get_authenticated_client",
]
