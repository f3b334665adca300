"""Backoff policies and the retry controller used for outbound calls.

Example:
    ```python
    from switchboard.retry import RetryController, get_retry_policy

    controller = RetryController()
    result = await controller.execute(operation, get_retry_policy("five_retries_in_five_minutes"))
    ```
"""

from .controller import (
    RetryAttempt,
    RetryController,
    RetryPredicate,
    default_is_retryable,
    retry_on_platform_errors,
)
from .policies import (
    RETRY_POLICIES,
    BackoffPolicy,
    ExponentialBackoff,
    FixedBackoff,
    JitteredExponentialBackoff,
    RetryPolicy,
    five_retries_in_five_minutes,
    get_retry_policy,
    rapid_retry_policy,
    retry_forever_exponential,
    retry_forever_exponential_capped,
    retry_forever_exponential_capped_random,
    ten_retries_in_about_thirty_minutes,
)

__all__ = [
    "RETRY_POLICIES",
    "BackoffPolicy",
    "ExponentialBackoff",
    "FixedBackoff",
    "JitteredExponentialBackoff",
    "RetryAttempt",
    "RetryController",
    "RetryPolicy",
    "RetryPredicate",
    "default_is_retryable",
    "five_retries_in_five_minutes",
    "get_retry_policy",
    "rapid_retry_policy",
    "retry_forever_exponential",
    "retry_forever_exponential_capped",
    "retry_forever_exponential_capped_random",
    "retry_on_platform_errors",
    "ten_retries_in_about_thirty_minutes",
]
