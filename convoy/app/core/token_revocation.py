"""
Token Revocation checks using Redis.

The identity service blacklists individual tokens on logout and flags a
user's tokens as revoked when the account is blocked. This service only
reads those markers.
"""

import logging

from redis.exceptions import RedisError

logger = logging.getLogger("convoy.auth")

# Redis key prefixes shared with the identity service
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


def user_revoked_key(user_id: str) -> str:
    return f"{USER_TOKENS_PREFIX}{user_id}:revoked"


async def is_token_revoked(redis_client, token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open: when Redis is missing or down the token is accepted and the
    failure is logged.
    """
    if redis_client is None:
        return False
    try:
        return await redis_client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}") > 0
    except (RedisError, OSError) as exc:
        logger.warning("Token revocation check failed, allowing request: %s", exc)
        return False


async def are_user_tokens_revoked(redis_client, user_id: str) -> bool:
    """Check if all tokens for a user have been revoked. Fails open like `is_token_revoked`."""
    if redis_client is None:
        return False
    try:
        return await redis_client.exists(user_revoked_key(user_id)) > 0
    except (RedisError, OSError) as exc:
        logger.warning("User revocation check failed for %s, allowing request: %s", user_id, exc)
        return False
