"""Backoff policies and retry budgets.

A BackoffPolicy maps an attempt number to the delay before the next attempt.
A RetryPolicy pairs a BackoffPolicy with an optional attempt budget.

Delays are in seconds. Policies are immutable and hold no per-call state,
so one instance can be shared by every call a client makes.
"""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from switchboard.exceptions import ConfigurationError


class BackoffPolicy(BaseModel, ABC):
    """Computes the delay that follows a failed attempt."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @abstractmethod
    def next_delay(self, attempt_number: int) -> float:
        """Delay in seconds after attempt `attempt_number` (1-based) fails."""


def _check_attempt(attempt_number: int) -> None:
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")


class FixedBackoff(BackoffPolicy):
    """Wait the same amount of time after every attempt.

    Attributes:
        delay: Seconds to wait.
    """

    delay: float = Field(default=1.0, ge=0.0, description="Seconds between attempts")

    def next_delay(self, attempt_number: int) -> float:
        _check_attempt(attempt_number)
        return self.delay


class ExponentialBackoff(BackoffPolicy):
    """Grow the delay geometrically, optionally capped.

    delay(n) = min(base * multiplier ** (n - 1), cap)

    Attributes:
        base: Delay after the first failed attempt.
        multiplier: Growth factor between attempts (>= 1 keeps delays non-decreasing).
        cap: Upper bound on any single delay, or None for no bound.
    """

    base: float = Field(default=1.0, ge=0.0, description="Delay after the first attempt")
    multiplier: float = Field(default=2.0, ge=1.0, description="Growth factor per attempt")
    cap: float | None = Field(default=None, ge=0.0, description="Maximum single delay")

    def next_delay(self, attempt_number: int) -> float:
        _check_attempt(attempt_number)
        try:
            delay = self.base * self.multiplier ** (attempt_number - 1)
        except OverflowError:
            delay = math.inf
        if self.cap is not None:
            delay = min(delay, self.cap)
        return delay


class JitteredExponentialBackoff(ExponentialBackoff):
    """Exponential-with-cap scaled by a uniform random factor in [0, 1].

    Spreads retries from many clients so they do not arrive in lockstep.

    Attributes:
        random_source: Zero-argument callable returning a float in [0, 1].
            Called once per attempt; inject a constant for deterministic tests.
    """

    random_source: Callable[[], float] = Field(
        default=random.random,
        exclude=True,
        repr=False,
        description="Uniform random source in [0, 1]",
    )

    def next_delay(self, attempt_number: int) -> float:
        ceiling = super().next_delay(attempt_number)
        factor = self.random_source()
        if not 0.0 <= factor <= 1.0:
            raise ValueError(f"random_source returned {factor}, expected a value in [0, 1]")
        if factor == 0.0:
            return 0.0
        return ceiling * factor


class RetryPolicy(BaseModel):
    """A backoff schedule plus an attempt budget.

    Attributes:
        backoff: Delay schedule between attempts.
        max_attempts: Total attempts allowed (first try included), or None
            to retry forever.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backoff: BackoffPolicy = Field(default_factory=ExponentialBackoff)
    max_attempts: int | None = Field(
        default=None,
        ge=1,
        description="Total attempts allowed; None retries forever",
    )

    @property
    def is_bounded(self) -> bool:
        return self.max_attempts is not None

    def next_delay(self, attempt_number: int) -> float:
        return self.backoff.next_delay(attempt_number)

    def can_retry_after(self, attempt_number: int) -> bool:
        """Whether another attempt may follow attempt `attempt_number`."""
        return self.max_attempts is None or attempt_number < self.max_attempts


_THIRTY_MINUTES = 30 * 60.0

retry_forever_exponential = RetryPolicy(backoff=ExponentialBackoff())

retry_forever_exponential_capped = RetryPolicy(
    backoff=ExponentialBackoff(cap=_THIRTY_MINUTES),
)

retry_forever_exponential_capped_random = RetryPolicy(
    backoff=JitteredExponentialBackoff(cap=_THIRTY_MINUTES),
)

ten_retries_in_about_thirty_minutes = RetryPolicy(
    backoff=JitteredExponentialBackoff(multiplier=1.96821),
    max_attempts=11,
)

five_retries_in_five_minutes = RetryPolicy(
    backoff=ExponentialBackoff(multiplier=3.86),
    max_attempts=6,
)

rapid_retry_policy = RetryPolicy(
    backoff=ExponentialBackoff(base=0.0, cap=0.001),
)

RETRY_POLICIES: dict[str, RetryPolicy] = {
    "retry_forever_exponential": retry_forever_exponential,
    "retry_forever_exponential_capped": retry_forever_exponential_capped,
    "retry_forever_exponential_capped_random": retry_forever_exponential_capped_random,
    "ten_retries_in_about_thirty_minutes": ten_retries_in_about_thirty_minutes,
    "five_retries_in_five_minutes": five_retries_in_five_minutes,
    "rapid_retry_policy": rapid_retry_policy,
}


def get_retry_policy(name: str) -> RetryPolicy:
    """Look up a named retry policy.

    Args:
        name: One of the keys of RETRY_POLICIES.

    Returns:
        The shared RetryPolicy instance.

    Raises:
        ConfigurationError: If the name is unknown.
    """
    try:
        return RETRY_POLICIES[name]
    except KeyError:
        known = ", ".join(sorted(RETRY_POLICIES))
        raise ConfigurationError(f"Unknown retry policy {name!r}. Known policies: {known}") from None
