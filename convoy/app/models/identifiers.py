"""
Identifier helpers.

Rides and users are keyed by 24-character hexadecimal ids, the format the
mobile clients and the realtime transport already carry around.
"""

import re
import secrets
from datetime import datetime, timezone

OBJECT_ID_PATTERN = re.compile(r"[0-9a-fA-F]{24}")


def new_object_id() -> str:
    """Generate a new 24-char hex identifier."""
    return secrets.token_hex(12)


def is_valid_object_id(value) -> bool:
    return isinstance(value, str) and OBJECT_ID_PATTERN.fullmatch(value) is not None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
