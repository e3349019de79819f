"""
JWT token utilities for authentication.

Tokens carry the caller identity used by every dispatch operation;
the role claim decides whether the caller acts as passenger, driver or admin.
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from edrive.app.core.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode (sub, user_id, role)
        expires_delta: Optional custom lifetime, defaults to the configured one
    """
    to_encode = data.copy()
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = datetime.utcnow() + lifetime
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_user_token(user, expires_delta: Optional[timedelta] = None) -> str:
    """
    Token for a User row.

    Example payload:
        {"sub": "ali@example.com", "user_id": 7, "role": "DRIVER", "exp": 1234567890}
    """
    return create_access_token(
        {"sub": user.email, "user_id": user.id, "role": user.role.value},
        expires_delta=expires_delta
    )


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decoded payload if the signature and expiry check out, None otherwise."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
