"""
Bounded retry with exponential backoff.

Only TransientServiceError is retried; every other error surfaces on the
first attempt. Retries are local to one call, so a retried chunk stage
never re-runs sibling chunks.

Dependencies: tenacity
System role: Retry policy for worker stages and service calls
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from remediation.core.exceptions import RemediationException, TransientServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff bounds."""

    max_attempts: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 20.0


def _log_before_sleep(operation: str, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"{__name__}:{operation} - Retry {retry_state.attempt_number}/"
            f"{policy.max_attempts} after transient error: {error}"
        )

    return before_sleep


def call_with_retry(
    fn: Callable[..., T],
    *args: Any,
    policy: RetryPolicy,
    operation: str,
    **kwargs: Any,
) -> tuple[T, int]:
    """
    Call fn, retrying transient failures.

    Args:
        fn: Callable to invoke
        *args: Positional arguments for fn
        policy: Attempt budget and backoff
        operation: Name used in log messages
        **kwargs: Keyword arguments for fn

    Returns:
        tuple[T, int]: fn's return value and the number of attempts used

    Raises:
        TransientServiceError: Last transient error once attempts are exhausted
        Exception: Any non-transient error, unretried. Pipeline errors carry
            the attempt count in details["attempts"]
    """
    attempts = 0

    def attempt() -> T:
        nonlocal attempts
        attempts += 1
        return fn(*args, **kwargs)

    retrying = Retrying(
        retry=retry_if_exception_type(TransientServiceError),
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.initial_backoff, max=policy.max_backoff),
        before_sleep=_log_before_sleep(operation, policy),
        reraise=True,
    )
    try:
        result = retrying(attempt)
    except RemediationException as e:
        e.details.setdefault("attempts", attempts)
        raise
    return result, attempts
