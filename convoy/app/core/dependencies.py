"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from convoy.app.core.jwt import decode_access_token
from convoy.app.core.redis_client import get_redis
from convoy.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from convoy.app.db.errors import store_errors
from convoy.app.db.session import get_db
from convoy.app.models.identifiers import is_valid_object_id
from convoy.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Checks, in order:
    1. Token signature and expiry
    2. Token not individually revoked
    3. User's tokens not revoked wholesale (account blocked)
    4. User still exists and is active

    Returns:
        Decoded token payload; `user_id` is the acting rider

    Raises:
        HTTPException: 401 on any authentication failure, 403 for inactive users
    """
    token = credentials.credentials

    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("user_id")
    if not is_valid_object_id(user_id):
        raise _unauthorized("Invalid token payload")

    # 2. Check if this specific token has been revoked
    if await is_token_revoked(redis_client, token):
        raise _unauthorized("Token has been revoked")

    # 3. Check if all user tokens have been revoked (user was blocked)
    if await are_user_tokens_revoked(redis_client, user_id):
        raise _unauthorized("User access has been revoked")

    # 4. Real-time database check: Verify user is still active
    with store_errors("get_current_user"):
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

    if not user:
        raise _unauthorized("User not found")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return payload
