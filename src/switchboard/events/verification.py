"""Inbound request signature verification.

Implements the platform's v0 signing scheme:

    basestring = "v0:" + timestamp + ":" + raw_body
    signature  = "v0=" + hex(HMAC-SHA256(signing_secret, basestring))

The timestamp window is checked before any cryptographic work, and the
final comparison is constant-time.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass

from switchboard.exceptions import (
    MissingHeaderError,
    SignatureInvalidError,
    SignatureVerificationError,
    TimestampStaleError,
)
from switchboard.utils import is_falsy

TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
SIGNATURE_HEADER = "X-Slack-Signature"
SIGNATURE_VERSION = "v0"
DEFAULT_TOLERANCE_SECONDS = 300


def _as_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def compute_signature(signing_secret: str, timestamp: int | str, body: bytes | str) -> str:
    """Compute the v0 signature for a request.

    Args:
        signing_secret: Shared signing secret.
        timestamp: Request timestamp exactly as sent in the header.
        body: Raw request body, byte-for-byte as received.

    Returns:
        Signature in format "v0=<hex_digest>".
    """
    basestring = b":".join(
        [SIGNATURE_VERSION.encode("ascii"), str(timestamp).encode("utf-8"), _as_bytes(body)]
    )
    digest = hmac.new(
        key=signing_secret.encode("utf-8"),
        msg=basestring,
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_request_signature(
    signing_secret: str,
    request_timestamp: int | str | None,
    request_signature: str | None,
    body: bytes | str,
    *,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """Verify that a request came from the platform and is fresh.

    Args:
        signing_secret: Shared signing secret.
        request_timestamp: Value of the timestamp header.
        request_signature: Value of the signature header ("v0=<hex>").
        body: Raw request body.
        tolerance_seconds: Allowed distance between the timestamp and now.
        now: Current Unix time; defaults to time.time().

    Returns:
        True when the request is authentic.

    Raises:
        MissingHeaderError: A header is absent or the timestamp is not an integer.
        TimestampStaleError: The timestamp is outside the tolerance window.
        SignatureInvalidError: The signature does not match.
    """
    if is_falsy(request_timestamp):
        raise MissingHeaderError(TIMESTAMP_HEADER)
    try:
        timestamp = int(request_timestamp)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise MissingHeaderError(TIMESTAMP_HEADER) from None
    if is_falsy(request_signature):
        raise MissingHeaderError(SIGNATURE_HEADER)

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance_seconds:
        raise TimestampStaleError(timestamp, tolerance_seconds)

    expected = compute_signature(signing_secret, request_timestamp, body)  # type: ignore[arg-type]
    if not hmac.compare_digest(expected.encode("utf-8"), str(request_signature).encode("utf-8")):
        raise SignatureInvalidError()
    return True


@dataclass(frozen=True)
class VerificationOutcome:
    """Boolean-like verification result that keeps the failure for diagnostics.

    Attributes:
        error: The verification failure, or None if the request passed.
    """

    error: SignatureVerificationError | None = None

    @property
    def verified(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str | None:
        return self.error.reason if self.error is not None else None

    def __bool__(self) -> bool:
        return self.verified


def check_request_signature(
    signing_secret: str,
    request_timestamp: int | str | None,
    request_signature: str | None,
    body: bytes | str,
    *,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> VerificationOutcome:
    """Non-raising form of verify_request_signature."""
    try:
        verify_request_signature(
            signing_secret,
            request_timestamp,
            request_signature,
            body,
            tolerance_seconds=tolerance_seconds,
            now=now,
        )
    except SignatureVerificationError as e:
        return VerificationOutcome(error=e)
    return VerificationOutcome()
