"""Request authentication dependencies."""
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from songshare.core.config import settings
from songshare.core.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)


async def verify_admin_token(x_admin_token: Annotated[str, Header()]) -> str:
    """Verify the admin token from header."""
    if x_admin_token != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
    return x_admin_token


async def get_current_user_id(authorization: str = Header(None)) -> str:
    """Resolve the bearer token to the auth provider's user id."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    token = authorization.replace("Bearer ", "")

    try:
        supabase = get_supabase_client()
        user_response = supabase.auth.get_user(token)
    except Exception as e:
        logger.debug(f"Supabase token validation failed: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    if not user_response or not user_response.user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    return str(user_response.user.id)
