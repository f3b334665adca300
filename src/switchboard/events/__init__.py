"""Inbound event handling: signature verification and webhook dispatch.

Example:
    ```python
    from switchboard.events import EventAdapter

    adapter = EventAdapter()

    @adapter.on("app_mention")
    async def mentioned(payload: dict) -> None:
        ...

    response = await adapter.create_handler().handle(request)
    ```
"""

from .adapter import ALL_EVENTS, EventAdapter, EventCallback, event_type_of
from .handler import (
    EventEmitter,
    MalformedBodyError,
    WebhookHandler,
    classify_payload,
    decision_for_error,
)
from .models import (
    POWERED_BY_HEADER,
    DispatchDecision,
    EventResponse,
    HandlerState,
    InboundRequest,
    WebhookResponse,
)
from .verification import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    VerificationOutcome,
    check_request_signature,
    compute_signature,
    verify_request_signature,
)

__all__ = [
    "ALL_EVENTS",
    "POWERED_BY_HEADER",
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "DispatchDecision",
    "EventAdapter",
    "EventCallback",
    "EventEmitter",
    "EventResponse",
    "HandlerState",
    "InboundRequest",
    "MalformedBodyError",
    "VerificationOutcome",
    "WebhookHandler",
    "WebhookResponse",
    "check_request_signature",
    "classify_payload",
    "compute_signature",
    "decision_for_error",
    "event_type_of",
    "verify_request_signature",
]
