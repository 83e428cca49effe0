"""
JWT token utilities for authentication.

Tokens are issued by the identity service; this service only needs to
validate them.
"""

from typing import Optional, Dict, Any
from jose import JWTError, jwt
from convoy.app.core.config import settings


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Returns:
        Decoded token payload if valid (includes: sub, user_id, exp), None otherwise
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
