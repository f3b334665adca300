"""Switchboard: an async client for the Slack platform.

Two halves share one configuration and one error taxonomy:

- Outbound: WebClient calls API methods through a bounded-concurrency queue
  with automatic retry and backoff.
- Inbound: WebhookHandler verifies signed event requests and dispatches
  them to application handlers.

Quick Start:
    from switchboard import EventAdapter, Settings, WebClient

    settings = Settings(token="xoxb-...", signing_secret="...")

    async with WebClient(settings) as client:
        result = await client.call("chat.postMessage", {"channel": "C123", "text": "hi"})

    adapter = EventAdapter(settings)

    @adapter.on("reaction_added")
    async def on_reaction(payload: dict) -> None:
        ...
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings

# Exceptions
from .exceptions import (
    BodyUnverifiableError,
    ConfigurationError,
    MissingHeaderError,
    PlatformError,
    QueueClosedError,
    RateLimitedError,
    RetriesExhaustedError,
    SignatureInvalidError,
    SignatureVerificationError,
    SwitchboardError,
    TimestampStaleError,
    TransportError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)

# Outbound
from .client import CallOptions, CallResult, RequestQueue, WebClient

# Inbound
from .events import (
    EventAdapter,
    EventResponse,
    InboundRequest,
    WebhookHandler,
    WebhookResponse,
    verify_request_signature,
)

# Retry
from .retry import RetryController, RetryPolicy, get_retry_policy

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    # Exceptions
    "SwitchboardError",
    "ConfigurationError",
    "TransportError",
    "RateLimitedError",
    "PlatformError",
    "RetriesExhaustedError",
    "QueueClosedError",
    "SignatureVerificationError",
    "MissingHeaderError",
    "TimestampStaleError",
    "SignatureInvalidError",
    "BodyUnverifiableError",
    # Logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    # Outbound
    "WebClient",
    "CallOptions",
    "CallResult",
    "RequestQueue",
    # Inbound
    "EventAdapter",
    "EventResponse",
    "InboundRequest",
    "WebhookHandler",
    "WebhookResponse",
    "verify_request_signature",
    # Retry
    "RetryController",
    "RetryPolicy",
    "get_retry_policy",
]
