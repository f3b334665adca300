"""FastAPI route that feeds inbound requests to a WebhookHandler."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from switchboard.events import InboundRequest, WebhookHandler


def inbound_request_from_starlette(request: Request) -> InboundRequest:
    """Adapt a Starlette request without consuming its body.

    Middleware that parsed the body can preserve the original bytes on
    ``request.state.raw_body``; a parsed body alone on ``request.state.body``
    makes the request unverifiable.
    """
    return InboundRequest(
        headers=dict(request.headers),
        read_body=request.body,
        raw_body=getattr(request.state, "raw_body", None),
        parsed_body=getattr(request.state, "body", None),
    )


def create_events_router(handler: WebhookHandler, path: str = "/slack/events") -> APIRouter:
    """Build a router exposing POST `path`.

    Args:
        handler: Handler that verifies and dispatches each request.
        path: Route path.

    Returns:
        Router to include in an application.
    """
    router = APIRouter(tags=["events"])

    @router.post(path, include_in_schema=False)
    async def receive_event(request: Request) -> Response:
        """Verify an inbound event request and dispatch it."""
        result = await handler.handle(inbound_request_from_starlette(request))
        return Response(content=result.body, status_code=result.status, headers=result.headers)

    return router
