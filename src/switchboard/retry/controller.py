"""Retry controller for outbound API calls.

Wraps a single asynchronous operation with the backoff schedule and attempt
budget of a RetryPolicy. Built on tenacity's AsyncRetrying so delays are
awaited suspensions rather than blocking sleeps.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    stop_never,
)

from switchboard.exceptions import (
    PlatformError,
    RateLimitedError,
    RetriesExhaustedError,
    TransportError,
)
from switchboard.logging import get_logger
from switchboard.retry.policies import RetryPolicy

logger = get_logger(__name__)

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]


@dataclass(frozen=True)
class RetryAttempt:
    """An upcoming attempt and why it is happening.

    Attributes:
        attempt_number: 1-based number of the attempt about to run.
        scheduled_delay: Seconds waited before it runs.
        cause: Error raised by the previous attempt.
    """

    attempt_number: int
    scheduled_delay: float
    cause: BaseException


def default_is_retryable(error: BaseException) -> bool:
    """Network failures and rate limits are worth retrying; nothing else is."""
    return isinstance(error, (TransportError, RateLimitedError))


def retry_on_platform_errors(*error_codes: str) -> RetryPredicate:
    """Extend the default predicate with platform error codes to retry.

    Args:
        *error_codes: Platform error codes (e.g. "internal_error") to treat as transient.

    Returns:
        A predicate for RetryController.execute.
    """
    codes = frozenset(error_codes)

    def is_retryable(error: BaseException) -> bool:
        if isinstance(error, PlatformError) and error.error_code in codes:
            return True
        return default_is_retryable(error)

    return is_retryable


def _server_suggested_delay(error: BaseException | None) -> float:
    if isinstance(error, RateLimitedError) and error.retry_after is not None:
        return error.retry_after
    return 0.0


def _raise_exhausted(retry_state: RetryCallState) -> None:
    cause = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retries exhausted",
        attempts=retry_state.attempt_number,
        error=str(cause),
    )
    raise RetriesExhaustedError(retry_state.attempt_number, cause) from cause


class RetryController:
    """Runs an operation until it succeeds, fails terminally, or runs out of attempts.

    Example:
        ```python
        controller = RetryController()
        result = await controller.execute(
            lambda: transport.send(request),
            rapid_retry_policy,
        )
        ```
    """

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_retry: Callable[[RetryAttempt], None] | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            sleep: Awaitable sleep used between attempts. Tests inject a recorder.
            on_retry: Optional hook called before each retry is scheduled.
        """
        self._sleep = sleep
        self._on_retry = on_retry

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        is_retryable: RetryPredicate = default_is_retryable,
    ) -> T:
        """Run `operation` under `policy`.

        Attempt 1 runs immediately. A failure that `is_retryable` rejects is
        re-raised unchanged. A retryable failure waits
        max(policy delay, server-suggested delay) and tries again, until the
        attempt budget (if any) is spent.

        Args:
            operation: Zero-argument coroutine function to run.
            policy: Backoff schedule and attempt budget.
            is_retryable: Classifies failures as retryable or terminal.

        Returns:
            The operation's result.

        Raises:
            RetriesExhaustedError: If a bounded policy ran out of attempts.
            Exception: Any non-retryable error from the operation.
        """

        def wait(retry_state: RetryCallState) -> float:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            return max(
                policy.next_delay(retry_state.attempt_number),
                _server_suggested_delay(error),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts) if policy.is_bounded else stop_never,
            wait=wait,
            retry=retry_if_exception(is_retryable),
            before_sleep=self._before_sleep,
            retry_error_callback=_raise_exhausted,
            sleep=self._sleep,
        )
        return await retrying(operation)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        cause = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        attempt = RetryAttempt(
            attempt_number=retry_state.attempt_number + 1,
            scheduled_delay=delay,
            cause=cause,  # type: ignore[arg-type]
        )
        logger.info(
            "Retrying operation",
            attempt=attempt.attempt_number,
            delay=attempt.scheduled_delay,
            error=str(cause),
        )
        if self._on_retry is not None:
            self._on_retry(attempt)
