"""Inbound webhook handler.

Takes one framework-independent InboundRequest through

    START -> BODY_READ -> VERIFIED -> CHALLENGE_RESPONDED | EVENT_EMITTED -> DONE
                       \\-> REJECTED -> DONE

and always returns a WebhookResponse. Nothing raised while handling a
request escapes handle(): a failed signature check becomes 404, anything
else, including errors raised by the event consumer, becomes 500.
"""

from __future__ import annotations

import json
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from switchboard.config import Settings
from switchboard.events.models import (
    POWERED_BY_HEADER,
    URL_VERIFICATION_TYPE,
    DispatchDecision,
    EventResponse,
    HandlerState,
    InboundRequest,
    WebhookResponse,
)
from switchboard.events.verification import verify_request_signature
from switchboard.exceptions import (
    BodyUnverifiableError,
    SignatureVerificationError,
    TimestampStaleError,
)
from switchboard.logging import get_logger
from switchboard.utils import package_identifier

logger = get_logger(__name__)

EventEmitter = Callable[[dict[str, Any]], Awaitable[EventResponse | Mapping[str, Any] | None]]


class MalformedBodyError(ValueError):
    """A verified body that is not a JSON object the handler understands."""


def classify_payload(payload: Mapping[str, Any]) -> DispatchDecision:
    """Decide how to handle a verified payload."""
    if payload.get("type") == URL_VERIFICATION_TYPE:
        return DispatchDecision.RESPOND_CHALLENGE
    return DispatchDecision.EMIT_EVENT


def decision_for_error(error: BaseException) -> DispatchDecision:
    """Classify a failure for diagnostics. Only the status code reaches the peer."""
    if isinstance(error, TimestampStaleError):
        return DispatchDecision.REJECT_STALE
    if isinstance(error, SignatureVerificationError):
        return DispatchDecision.REJECT_INVALID_SIGNATURE
    return DispatchDecision.REJECT_MALFORMED


def coerce_event_response(value: EventResponse | Mapping[str, Any] | None) -> EventResponse:
    """Normalise what a consumer returned; None means a plain 200."""
    if value is None:
        return EventResponse()
    if isinstance(value, EventResponse):
        return value
    return EventResponse.model_validate(dict(value))


class WebhookHandler:
    """Verifies inbound requests and passes events to the application.

    Example:
        ```python
        async def emit(payload: dict) -> EventResponse:
            print(payload["event"]["type"])
            return EventResponse(status=200)

        handler = WebhookHandler(Settings(signing_secret="..."), emit)
        response = await handler.handle(InboundRequest.from_bytes(headers, body))
        ```
    """

    def __init__(
        self,
        settings: Settings,
        emit: EventEmitter,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the handler.

        Args:
            settings: Configuration; must carry a signing secret.
            emit: Application event consumer. Awaited once per event.
            clock: Source of the current Unix time.

        Raises:
            ConfigurationError: If no signing secret is configured.
        """
        self._signing_secret = settings.require_signing_secret()
        self._tolerance = settings.timestamp_tolerance_seconds
        self._verbose_errors = settings.verbose_errors
        self._emit = emit
        self._clock = clock
        self._identifier = package_identifier()

    async def handle(self, request: InboundRequest) -> WebhookResponse:
        """Process one request to completion.

        Args:
            request: The inbound request.

        Returns:
            The response to send. Never raises for request-level failures.
        """
        try:
            return await self._process(request)
        except Exception as e:
            decision = DispatchDecision.REJECT_MALFORMED
            logger.exception(
                "Unexpected error handling inbound request",
                state=HandlerState.REJECTED.value,
                decision=decision.value,
                error_type=type(e).__name__,
            )
            body = str(e).encode("utf-8") if self._verbose_errors else b""
            headers = {"Content-Type": "text/plain; charset=utf-8"} if body else {}
            return self._respond(500, body=body, headers=headers, decision=decision)

    async def _process(self, request: InboundRequest) -> WebhookResponse:
        raw_body = await self._read_body(request)
        logger.debug("Inbound request body read", state=HandlerState.BODY_READ.value)

        try:
            verify_request_signature(
                self._signing_secret,
                request.timestamp_header,
                request.signature_header,
                raw_body,
                tolerance_seconds=self._tolerance,
                now=self._clock(),
            )
        except SignatureVerificationError as e:
            decision = decision_for_error(e)
            logger.warning(
                "Request signing verification failed",
                state=HandlerState.REJECTED.value,
                decision=decision.value,
                reason=e.reason,
            )
            return self._respond(404, decision=decision)
        logger.debug("Inbound request verified", state=HandlerState.VERIFIED.value)

        payload = self._parse(raw_body)
        decision = classify_payload(payload)

        if decision is DispatchDecision.RESPOND_CHALLENGE:
            challenge = payload.get("challenge")
            if not isinstance(challenge, str):
                raise MalformedBodyError("url_verification request has no challenge")
            logger.info("Responded to url verification", state=HandlerState.CHALLENGE_RESPONDED.value)
            return self._respond(
                200,
                body=challenge.encode("utf-8"),
                headers={"Content-Type": "text/plain; charset=utf-8"},
                decision=decision,
            )

        event_response = coerce_event_response(await self._emit(payload))
        body, content_type = WebhookResponse.encode_content(event_response.content)
        logger.debug(
            "Event emitted",
            state=HandlerState.EVENT_EMITTED.value,
            status=event_response.status,
        )
        return self._respond(
            event_response.status,
            body=body,
            headers={"Content-Type": content_type} if content_type else {},
            decision=decision,
        )

    async def _read_body(self, request: InboundRequest) -> bytes:
        """Get the exact bytes the peer sent.

        Preserved raw bytes win. A parsed body without them cannot be
        verified, since re-serializing it would not reproduce the signed bytes.
        """
        if request.raw_body is not None:
            return request.raw_body
        if request.parsed_body is not None:
            raise BodyUnverifiableError()
        if request.read_body is None:
            raise BodyUnverifiableError()
        return await request.read_body()

    @staticmethod
    def _parse(raw_body: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedBodyError(f"Request body is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise MalformedBodyError("Request body is not a JSON object")
        return payload

    def _respond(
        self,
        status: int,
        *,
        body: bytes = b"",
        headers: Mapping[str, str] | None = None,
        decision: DispatchDecision | None = None,
    ) -> WebhookResponse:
        response_headers = {POWERED_BY_HEADER: self._identifier, **(headers or {})}
        logger.debug("Inbound request done", state=HandlerState.DONE.value, status=status)
        return WebhookResponse(
            status=status,
            headers=response_headers,
            body=body,
            decision=decision,
        )
