"""
Bounded retries for optimistic-lock conflicts.
"""

from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)

from src.core.utils.exceptions import ConcurrencyError
from src.core.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _log_conflict(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Concurrency conflict, retrying",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


def retry_on_conflict(operation: Callable[[], T], attempts: int = 3) -> T:
    """
    Run `operation`, re-running it when it raises a ConcurrencyError.

    The operation must re-read whatever state it depends on, since each
    attempt starts from scratch. After `attempts` failures the last
    ConcurrencyError is re-raised to the caller.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_none(),
        retry=retry_if_exception_type(ConcurrencyError),
        before_sleep=_log_conflict,
        reraise=True,
    )
    return retrying(operation)
