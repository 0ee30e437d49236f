"""
sayso - Request Authentication.

Validates the Supabase JWT on the Authorization header and records the
caller in the request context.
"""

import logging

from fastapi import Header, HTTPException
from pydantic import BaseModel

from sayso.db.client import get_service_client
from sayso.db.request_context import set_request_context

logger = logging.getLogger(__name__)


class AuthenticatedUser(BaseModel):
    """Authenticated user info from Supabase JWT."""
    id: str
    email: str | None
    email_verified: bool = False
    access_token: str


async def get_current_user(authorization: str = Header(None)) -> AuthenticatedUser:
    """
    Validate Supabase JWT and extract user info.

    Expects: Authorization: Bearer <supabase_access_token>
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")

    token = authorization.replace("Bearer ", "")

    try:
        client = get_service_client()
        user_response = client.auth.get_user(token)

        if not user_response or not user_response.user:
            raise HTTPException(status_code=401, detail="Invalid token")

        user = user_response.user
        set_request_context(access_token=token)

        return AuthenticatedUser(
            id=user.id,
            email=user.email,
            email_verified=bool(getattr(user, "email_confirmed_at", None)),
            access_token=token,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Auth error: {e}")
        raise HTTPException(status_code=401, detail="Authentication failed")
