"""
Token Revocation System using Redis.

Implements token blacklisting so logout and admin suspension take effect
before the JWT expires.
"""

import logging
import edrive.app.core.redis_client as redis_client_module
from edrive.app.core.config import settings

logger = logging.getLogger(__name__)

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        ttl_seconds = settings.access_token_expire_minutes * 60
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await redis_client_module.redis_client.set(key, str(user_id), ex=ttl_seconds)
        return True
    except Exception as exc:
        logger.error("Error revoking token for user %s: %s", user_id, exc)
        return False


async def is_token_revoked(token: str) -> bool:
    """Check if a token has been revoked."""
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await redis_client_module.redis_client.exists(key)
        return exists > 0
    except Exception as exc:
        # Fail open: an unreachable Redis must not lock every rider out
        logger.warning("Error checking token revocation: %s", exc)
        return False


async def revoke_all_user_tokens(user_id: int) -> bool:
    """
    Revoke all active tokens for a specific user.

    Called when an admin disables an account to terminate all sessions.
    """
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        ttl_seconds = settings.access_token_expire_minutes * 60
        await redis_client_module.redis_client.set(key, "1", ex=ttl_seconds)
        return True
    except Exception as exc:
        logger.error("Error revoking all tokens for user %s: %s", user_id, exc)
        return False


async def are_user_tokens_revoked(user_id: int) -> bool:
    """Check if all tokens for a user have been revoked."""
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        exists = await redis_client_module.redis_client.exists(key)
        return exists > 0
    except Exception as exc:
        logger.warning("Error checking user token revocation for %s: %s", user_id, exc)
        return False


async def clear_user_token_revocation(user_id: int) -> bool:
    """Clear the global token revocation flag when an account is re-enabled."""
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        await redis_client_module.redis_client.delete(key)
        return True
    except Exception as exc:
        logger.error("Error clearing token revocation for user %s: %s", user_id, exc)
        return False
