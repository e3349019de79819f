"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from typing import Optional
from fastapi import Depends, HTTPException, WebSocket, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from edrive.app.core.jwt import decode_access_token
from edrive.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from edrive.app.db.session import get_db
from edrive.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


async def authenticate_token(token: str, db: AsyncSession) -> dict:
    """
    Validate a bearer token and return its payload.

    Checks:
    1. JWT signature and expiry
    2. Token has not been revoked (logout)
    3. User tokens have not been revoked wholesale (suspension)
    4. User still exists and is active

    Raises:
        HTTPException: 401/403 if authentication fails for any reason
    """
    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 2. Check if this specific token has been revoked
    if await is_token_revoked(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 3. Check if all user tokens have been revoked (user was suspended)
    if await are_user_tokens_revoked(user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User access has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # 4. Real-time database check: Verify user is still active
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    # Keep the display name at hand for notifications
    payload["full_name"] = user.full_name
    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload (sub, user_id, role, full_name)
    """
    return await authenticate_token(credentials.credentials, db)


async def get_current_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Raw bearer token (needed to revoke it on logout)."""
    return credentials.credentials


async def get_websocket_user(websocket: WebSocket, db: AsyncSession) -> Optional[dict]:
    """
    Authenticate a WebSocket from its `token` query parameter.

    Browsers cannot set headers on a WebSocket handshake, so the JWT travels
    in the query string. Returns None (and closes the socket with 1008)
    when authentication fails.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    try:
        return await authenticate_token(token, db)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
