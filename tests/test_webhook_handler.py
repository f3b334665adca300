"""Tests for the inbound webhook handler."""

from __future__ import annotations

import json
import time
from unittest.mock import AsyncMock

import pytest
from signing import (
    REACTION_ADDED_BODY,
    SIGNING_SECRET,
    URL_VERIFICATION_BODY,
    signed_headers,
    signed_request,
)

from switchboard.config import Settings
from switchboard.events import (
    POWERED_BY_HEADER,
    DispatchDecision,
    EventResponse,
    InboundRequest,
    WebhookHandler,
    classify_payload,
    decision_for_error,
)
from switchboard.exceptions import (
    BodyUnverifiableError,
    ConfigurationError,
    SignatureInvalidError,
    TimestampStaleError,
)


@pytest.fixture
def emit() -> AsyncMock:
    """Application event consumer that acknowledges with 200."""
    return AsyncMock(return_value=EventResponse(status=200))


@pytest.fixture
def handler(settings: Settings, emit: AsyncMock) -> WebhookHandler:
    return WebhookHandler(settings, emit)


class TestWebhookHandlerInit:
    """Tests for handler construction."""

    def test_requires_signing_secret(self, emit: AsyncMock):
        """A handler cannot be built without a signing secret."""
        with pytest.raises(ConfigurationError, match="signing secret"):
            WebhookHandler(Settings(), emit)


class TestHandle:
    """Tests for WebhookHandler.handle."""

    @pytest.mark.asyncio
    async def test_valid_event(self, handler: WebhookHandler, emit: AsyncMock):
        """A verified event is emitted and its status returned."""
        response = await handler.handle(signed_request(REACTION_ADDED_BODY))

        assert response.status == 200
        assert response.decision is DispatchDecision.EMIT_EVENT
        emit.assert_awaited_once_with(json.loads(REACTION_ADDED_BODY))

    @pytest.mark.asyncio
    async def test_preserved_raw_body(self, handler: WebhookHandler, emit: AsyncMock):
        """Raw bytes preserved by an upstream parser are used without reading the stream."""
        read_body = AsyncMock(side_effect=AssertionError("stream must not be read"))
        request = InboundRequest(
            headers=signed_headers(REACTION_ADDED_BODY),
            read_body=read_body,
            raw_body=REACTION_ADDED_BODY.encode(),
            parsed_body=json.loads(REACTION_ADDED_BODY),
        )

        response = await handler.handle(request)

        assert response.status == 200
        read_body.assert_not_awaited()
        emit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_parsed_body_without_raw_bytes(self, handler: WebhookHandler, emit: AsyncMock):
        """A pre-parsed body without raw bytes cannot be verified: 500."""
        request = signed_request(REACTION_ADDED_BODY, parsed_body={})

        response = await handler.handle(request)

        assert response.status == 500
        assert response.decision is DispatchDecision.REJECT_MALFORMED
        assert response.body == b""
        emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wrong_secret(self, handler: WebhookHandler, emit: AsyncMock):
        """A request signed with another secret gets 404."""
        response = await handler.handle(signed_request(REACTION_ADDED_BODY, secret="INVALID_SECRET"))

        assert response.status == 404
        assert response.body == b""
        assert response.decision is DispatchDecision.REJECT_INVALID_SIGNATURE
        emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wrong_secret_regardless_of_body(self, handler: WebhookHandler, emit: AsyncMock):
        """Even handshake traffic is rejected when the signature is wrong."""
        response = await handler.handle(
            signed_request(URL_VERIFICATION_BODY, secret="INVALID_SECRET")
        )

        assert response.status == 404
        assert b"TEST_CHALLENGE" not in response.body

    @pytest.mark.asyncio
    async def test_stale_timestamp(self, handler: WebhookHandler, emit: AsyncMock):
        """A timestamp six minutes old gets 404."""
        six_minutes_ago = int(time.time()) - 6 * 60

        response = await handler.handle(
            signed_request(REACTION_ADDED_BODY, timestamp=six_minutes_ago)
        )

        assert response.status == 404
        assert response.decision is DispatchDecision.REJECT_STALE
        emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_and_invalid_look_identical(self, handler: WebhookHandler):
        """Both authentication failures produce the same external response."""
        stale = await handler.handle(
            signed_request(REACTION_ADDED_BODY, timestamp=int(time.time()) - 3600)
        )
        invalid = await handler.handle(signed_request(REACTION_ADDED_BODY, secret="nope"))

        assert (stale.status, stale.headers, stale.body) == (
            invalid.status,
            invalid.headers,
            invalid.body,
        )

    @pytest.mark.asyncio
    async def test_missing_headers(self, handler: WebhookHandler):
        """A request with no signing headers gets 404."""
        response = await handler.handle(InboundRequest.from_bytes({}, REACTION_ADDED_BODY.encode()))

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_body_read_failure(self, handler: WebhookHandler):
        """An error reading the body gets 500 with an empty body."""
        request = InboundRequest(
            headers=signed_headers(REACTION_ADDED_BODY),
            read_body=AsyncMock(side_effect=RuntimeError("test error")),
        )

        response = await handler.handle(request)

        assert response.status == 500
        assert response.body == b""

    @pytest.mark.asyncio
    async def test_verbose_errors_expose_message(self, emit: AsyncMock):
        """With verbose_errors the 500 body carries the error message."""
        with pytest.warns(UserWarning, match="verbose_errors"):
            settings = Settings(signing_secret=SIGNING_SECRET, verbose_errors=True)
        handler = WebhookHandler(settings, emit)
        request = InboundRequest(
            headers=signed_headers(REACTION_ADDED_BODY),
            read_body=AsyncMock(side_effect=RuntimeError("test error")),
        )

        response = await handler.handle(request)

        assert response.status == 500
        assert response.text == "test error"

    @pytest.mark.asyncio
    async def test_identification_header_on_every_response(self, handler: WebhookHandler):
        """Success, 404 and 500 responses all identify the library."""
        responses = [
            await handler.handle(signed_request(REACTION_ADDED_BODY)),
            await handler.handle(signed_request(REACTION_ADDED_BODY, secret="nope")),
            await handler.handle(signed_request(REACTION_ADDED_BODY, parsed_body={})),
        ]

        for response in responses:
            assert response.headers[POWERED_BY_HEADER].startswith("switchboard/")

    @pytest.mark.asyncio
    async def test_url_verification(self, handler: WebhookHandler, emit: AsyncMock):
        """Handshakes echo the challenge and never reach the application."""
        response = await handler.handle(signed_request(URL_VERIFICATION_BODY))

        assert response.status == 200
        assert response.text == "TEST_CHALLENGE"
        assert response.decision is DispatchDecision.RESPOND_CHALLENGE
        emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_url_verification_without_challenge(self, handler: WebhookHandler):
        """A handshake with no challenge is malformed."""
        response = await handler.handle(signed_request('{"type":"url_verification"}'))

        assert response.status == 500

    @pytest.mark.asyncio
    async def test_invalid_json(self, handler: WebhookHandler, emit: AsyncMock):
        """A signed body that is not JSON gets 500."""
        response = await handler.handle(signed_request("not json"))

        assert response.status == 500
        emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_object_json(self, handler: WebhookHandler):
        """A JSON array is not an event payload."""
        response = await handler.handle(signed_request("[1, 2, 3]"))

        assert response.status == 500

    @pytest.mark.asyncio
    async def test_consumer_status_and_content(self, settings: Settings):
        """The consumer's status and content become the response."""
        emit = AsyncMock(return_value=EventResponse(status=202, content={"received": True}))
        handler = WebhookHandler(settings, emit)

        response = await handler.handle(signed_request(REACTION_ADDED_BODY))

        assert response.status == 202
        assert json.loads(response.body) == {"received": True}
        assert response.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_consumer_returns_none(self, settings: Settings):
        """A consumer that returns nothing gets a 200."""
        handler = WebhookHandler(settings, AsyncMock(return_value=None))

        response = await handler.handle(signed_request(REACTION_ADDED_BODY))

        assert response.status == 200
        assert response.body == b""

    @pytest.mark.asyncio
    async def test_consumer_returns_mapping(self, settings: Settings):
        """A plain mapping is accepted as a response."""
        handler = WebhookHandler(settings, AsyncMock(return_value={"status": 201, "content": "ok"}))

        response = await handler.handle(signed_request(REACTION_ADDED_BODY))

        assert response.status == 201
        assert response.text == "ok"

    @pytest.mark.asyncio
    async def test_consumer_failure(self, settings: Settings):
        """A consumer that raises gets a 500, never an exception."""
        handler = WebhookHandler(settings, AsyncMock(side_effect=RuntimeError("handler blew up")))

        response = await handler.handle(signed_request(REACTION_ADDED_BODY))

        assert response.status == 500
        assert response.body == b""

    @pytest.mark.asyncio
    async def test_consumer_verification_error_is_internal(self, settings: Settings):
        """A verification error raised by the consumer is a 500, not an auth failure."""
        handler = WebhookHandler(settings, AsyncMock(side_effect=SignatureInvalidError()))

        response = await handler.handle(signed_request(REACTION_ADDED_BODY))

        assert response.status == 500
        assert response.decision is DispatchDecision.REJECT_MALFORMED
        assert response.headers[POWERED_BY_HEADER].startswith("switchboard/")

    @pytest.mark.asyncio
    async def test_injected_clock(self, settings: Settings, emit: AsyncMock):
        """The freshness check uses the handler's clock."""
        handler = WebhookHandler(settings, emit, clock=lambda: 1_000_000.0)

        fresh = await handler.handle(signed_request(REACTION_ADDED_BODY, timestamp=1_000_100))
        stale = await handler.handle(signed_request(REACTION_ADDED_BODY, timestamp=999_000))

        assert fresh.status == 200
        assert stale.status == 404


class TestClassification:
    """Tests for payload and error classification."""

    def test_classify_payload(self):
        """url_verification is a handshake; everything else is an event."""
        assert classify_payload({"type": "url_verification"}) is DispatchDecision.RESPOND_CHALLENGE
        assert classify_payload({"type": "event_callback"}) is DispatchDecision.EMIT_EVENT
        assert classify_payload({}) is DispatchDecision.EMIT_EVENT

    def test_decision_for_error(self):
        """Errors map to rejection decisions."""
        assert decision_for_error(TimestampStaleError(0, 300)) is DispatchDecision.REJECT_STALE
        assert (
            decision_for_error(SignatureInvalidError())
            is DispatchDecision.REJECT_INVALID_SIGNATURE
        )
        assert decision_for_error(BodyUnverifiableError()) is DispatchDecision.REJECT_MALFORMED
