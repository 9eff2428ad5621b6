import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import SUPABASE_ANON_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


async def verify_access_token(token: str) -> AuthUser:
    """
    Resolve a Supabase access token to its user by asking the auth server.
    Raises 401 when the token is rejected.
    """
    if not SUPABASE_URL or not SUPABASE_ANON_KEY:
        logger.error("❌ SUPABASE_URL / SUPABASE_ANON_KEY not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                f"{SUPABASE_URL.rstrip('/')}/auth/v1/user",
                headers={"Authorization": f"Bearer {token}", "apikey": SUPABASE_ANON_KEY},
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ Auth server unreachable: {str(e)}")
        raise HTTPException(status_code=401, detail="Authentication failed") from e

    if response.status_code != 200:
        logger.warning(f"⚠️ Token rejected by auth server: HTTP {response.status_code}")
        raise HTTPException(status_code=401, detail="Authentication required")

    payload = response.json()
    user_id = payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    return AuthUser(id=user_id, email=payload.get("email"))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """Get the signed-in user from the bearer token"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required")

    user = await verify_access_token(credentials.credentials)
    logger.debug(f"✅ Authenticated user {user.id}")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthUser]:
    """Same as get_current_user, but anonymous requests get None"""
    if credentials is None or not credentials.credentials:
        return None

    try:
        return await verify_access_token(credentials.credentials)
    except HTTPException as e:
        logger.info(f"ℹ️ Ignoring unusable bearer token: {e.detail}")
        return None
