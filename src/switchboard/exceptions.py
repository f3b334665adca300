"""Switchboard exception hierarchy.

Provides structured exceptions for both halves of the library: outbound
API calls and inbound webhook verification. All exceptions inherit from
SwitchboardError for easy catching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from switchboard.client.models import CallResult


class SwitchboardError(Exception):
    """Base exception for all Switchboard errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code.
    """

    code: str = "switchboard_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ConfigurationError(SwitchboardError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"


class TransportError(SwitchboardError):
    """Network-level failure talking to the platform.

    Covers connection errors, timeouts and HTTP 5xx responses. Retryable.

    Attributes:
        status_code: HTTP status if a response was received.
    """

    code: str = "transport_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(SwitchboardError):
    """The platform rejected the call with a rate limit.

    Retryable. The server-suggested delay is a floor on the backoff delay.

    Attributes:
        retry_after: Seconds the server asked us to wait, if it said.
    """

    code: str = "rate_limited"

    def __init__(self, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        if retry_after is None:
            message = "Rate limited"
        else:
            message = f"Rate limited. Retry after {retry_after:g}s"
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "retry_after": self.retry_after,
                "message": self.message,
            }
        }


class PlatformError(SwitchboardError):
    """The platform answered but reported a failure.

    Terminal: retrying the same call will not change the outcome.

    Attributes:
        error_code: Error code reported by the platform (e.g. "invalid_auth").
        result: The failed CallResult, when one was parsed.
    """

    code: str = "platform_error"

    def __init__(self, error_code: str, result: CallResult | None = None) -> None:
        self.error_code = error_code
        self.result = result
        super().__init__(f"An API error occurred: {error_code}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "error_code": self.error_code,
                "message": self.message,
            }
        }


class RetriesExhaustedError(SwitchboardError):
    """The retry budget ran out before the call succeeded.

    Attributes:
        attempts: Number of attempts made.
        cause: The error raised by the final attempt.
    """

    code: str = "retries_exhausted"

    def __init__(self, attempts: int, cause: BaseException | None) -> None:
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Retries exhausted after {attempts} attempts: {cause}")


class QueueClosedError(SwitchboardError):
    """Work was submitted to a request queue that no longer admits tasks."""

    code: str = "queue_closed"

    def __init__(self, message: str = "Request queue is closed") -> None:
        super().__init__(message)


class SignatureVerificationError(SwitchboardError):
    """Inbound request failed authentication.

    Every subclass maps to the same external response so a prober cannot
    tell which check failed. The reason stays available for diagnostics.

    Attributes:
        reason: Machine-readable failure reason.
    """

    code: str = "signature_verification_failed"
    reason: str = "verification_failed"

    def __init__(self, message: str = "Request signing verification failed") -> None:
        super().__init__(message)


class MissingHeaderError(SignatureVerificationError):
    """The timestamp or signature header is absent or unparseable."""

    reason: str = "missing_header"

    def __init__(self, header: str) -> None:
        self.header = header
        super().__init__(f"Request signing verification failed: missing or malformed {header}")


class TimestampStaleError(SignatureVerificationError):
    """The request timestamp lies outside the replay tolerance window."""

    reason: str = "timestamp_stale"

    def __init__(self, timestamp: int, tolerance_seconds: int) -> None:
        self.timestamp = timestamp
        self.tolerance_seconds = tolerance_seconds
        super().__init__(
            "Request signing verification failed: "
            f"timestamp {timestamp} is outside the {tolerance_seconds}s tolerance"
        )


class SignatureInvalidError(SignatureVerificationError):
    """The computed signature does not match the one supplied."""

    reason: str = "signature_mismatch"

    def __init__(self) -> None:
        super().__init__("Request signing verification failed: signature mismatch")


class BodyUnverifiableError(SwitchboardError):
    """The raw request bytes are unavailable so no signature can be computed.

    Raised when an upstream layer parsed the body without preserving the
    original bytes.
    """

    code: str = "body_unverifiable"

    def __init__(self) -> None:
        super().__init__(
            "The request body was parsed before it reached the handler and the raw "
            "bytes were not preserved, so the request signature cannot be verified"
        )
