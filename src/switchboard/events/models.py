"""Models for inbound webhook requests and the handler's decisions."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from switchboard.events.verification import SIGNATURE_HEADER, TIMESTAMP_HEADER

POWERED_BY_HEADER = "X-Slack-Powered-By"

URL_VERIFICATION_TYPE = "url_verification"


class HandlerState(str, Enum):
    """Progress of one inbound request through the handler."""

    START = "start"
    BODY_READ = "body_read"
    VERIFIED = "verified"
    REJECTED = "rejected"
    CHALLENGE_RESPONDED = "challenge_responded"
    EVENT_EMITTED = "event_emitted"
    DONE = "done"


class DispatchDecision(str, Enum):
    """What the handler decided to do with a request."""

    RESPOND_CHALLENGE = "respond_challenge"
    EMIT_EVENT = "emit_event"
    REJECT_STALE = "reject_stale"
    REJECT_INVALID_SIGNATURE = "reject_invalid_signature"
    REJECT_MALFORMED = "reject_malformed"


@dataclass(frozen=True)
class InboundRequest:
    """One inbound HTTP request, independent of the web framework.

    Attributes:
        headers: Request headers. Lookups are case-insensitive.
        read_body: Coroutine function that reads the raw body stream.
        raw_body: Raw bytes preserved by an upstream body parser, if any.
        parsed_body: Structured body produced by an upstream parser, if any.
    """

    headers: Mapping[str, str] = field(default_factory=dict)
    read_body: Callable[[], Awaitable[bytes]] | None = None
    raw_body: bytes | None = None
    parsed_body: Any = None

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def timestamp_header(self) -> str | None:
        return self.header(TIMESTAMP_HEADER)

    @property
    def signature_header(self) -> str | None:
        return self.header(SIGNATURE_HEADER)

    @classmethod
    def from_bytes(cls, headers: Mapping[str, str], body: bytes) -> InboundRequest:
        """Build a request whose body stream yields `body`."""

        async def read_body() -> bytes:
            return body

        return cls(headers=dict(headers), read_body=read_body)


class EventResponse(BaseModel):
    """What an application event consumer wants sent back.

    Attributes:
        status: HTTP status code for the response.
        content: Optional response body; strings are sent as text, other
            values as JSON.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: int = Field(default=200, ge=100, le=599)
    content: str | dict[str, Any] | list[Any] | None = None


class WebhookResponse(BaseModel):
    """The HTTP response the handler produced.

    Attributes:
        status: HTTP status code.
        headers: Response headers; always includes the identification header.
        body: Response body bytes.
        decision: How the request was classified, when it got that far.
    """

    model_config = ConfigDict(frozen=True)

    status: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    decision: DispatchDecision | None = None

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    @staticmethod
    def encode_content(content: str | dict[str, Any] | list[Any] | None) -> tuple[bytes, str | None]:
        """Serialize consumer content, returning (body, content type)."""
        if content is None:
            return b"", None
        if isinstance(content, str):
            return content.encode("utf-8"), "text/plain; charset=utf-8"
        return json.dumps(content).encode("utf-8"), "application/json"
