"""
Transaction helpers for core mutations and reads.

Every mutation and its audit entry run inside ``atomic_mutation``: either both
rows persist or neither does. Storage failures surface as ``StorageError``
after the rollback and are never retried. Idempotent reads may be retried once.
"""

import functools
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from django.db import DatabaseError, OperationalError, transaction
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from apps.core.exceptions import StorageError
from apps.core.logging import get_logger

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


@contextmanager
def atomic_mutation(operation: str) -> Generator[None, None, None]:
    """
    Run a mutation plus its audit write as one atomic unit.

    Args:
        operation: Operation name for logs, e.g. 'finance_record_created'

    Raises:
        StorageError: If the store rejected any write in the block.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.error("mutation_rolled_back", operation=operation, error=str(exc))
        raise StorageError(f"{operation} failed: the store rejected the write") from exc


def in_atomic_block() -> bool:
    """Check whether the default connection is inside transaction.atomic()."""
    return transaction.get_connection().in_atomic_block


def _log_read_retry(retry_state) -> None:
    logger.warning(
        "read_retry",
        function=getattr(retry_state.fn, "__name__", "unknown"),
        attempt=retry_state.attempt_number,
    )


def retry_read(func: Callable[P, R]) -> Callable[P, R]:
    """
    Retry an idempotent read once on a transient OperationalError.

    Any database error that survives the retry becomes StorageError.
    Never apply this to mutations.
    """
    retrying = retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(2),
        wait=wait_fixed(0.05),
        before_sleep=_log_read_retry,
        reraise=True,
    )(func)

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return retrying(*args, **kwargs)
        except DatabaseError as exc:
            logger.error("read_failed", function=func.__name__, error=str(exc))
            raise StorageError(f"{func.__name__} failed: store unavailable") from exc

    return wrapper
