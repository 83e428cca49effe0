"""
Translation of driver-level failures into application errors.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError

from convoy.app.core.exceptions import StoreUnavailableError

logger = logging.getLogger("convoy.db")


@contextmanager
def store_errors(operation: str):
    """
    Re-raise connectivity problems as StoreUnavailableError.

    Integrity and programming errors pass through untouched; they are
    bugs or races the caller handles, not outages.
    """
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError, OSError) as exc:
        logger.error("Store unavailable during %s: %s", operation, exc)
        raise StoreUnavailableError() from exc
