# platelink/utils/retry.py
"""
Retry with doubling backoff for transient storage failures.
Only connection-level errors are retried; integrity and business errors pass
straight through to the caller.

A write that cannot be detected as already-applied (plain credits, counter
increments) must not be re-run: an error can surface after its commit landed.
Decorate those with @retry_transient(attempts=1) so the failure still becomes
a TransientStorageError, just without a second attempt.
"""

import functools
import time

from sqlalchemy.exc import OperationalError, DBAPIError

from platelink.config import settings
from platelink.errors import TransientStorageError
from platelink.utils.logger import get_logger

logger = get_logger(__name__)


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def retry_transient(func=None, *, attempts: int = None):
    """Use bare (@retry_transient) or with an attempts override."""
    if func is None:
        return functools.partial(retry_transient, attempts=attempts)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        total = max(1, attempts if attempts is not None else settings.DB_RETRY_ATTEMPTS)
        backoff = settings.DB_RETRY_BACKOFF_SECONDS
        for attempt in range(1, total + 1):
            try:
                return func(*args, **kwargs)
            except DBAPIError as e:
                if not _is_transient(e):
                    raise
                if attempt == total:
                    logger.error(f"{func.__qualname__} failed after {total} attempt(s): {e}")
                    raise TransientStorageError(message=f"Storage unavailable: {e.orig}") from e
                logger.warning(f"{func.__qualname__} transient failure ({attempt}/{total}), retrying in {backoff}s")
                time.sleep(backoff)
                backoff = min(backoff * 2, settings.DB_RETRY_MAX_BACKOFF_SECONDS)
    return wrapper
