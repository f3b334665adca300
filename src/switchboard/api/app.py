"""FastAPI application for receiving platform events."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from switchboard import __version__
from switchboard.config import Settings
from switchboard.events import EventAdapter, EventEmitter, WebhookHandler
from switchboard.logging import configure_logging, get_logger

from .router import create_events_router

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    emitter: EventAdapter | EventEmitter | None = None,
) -> FastAPI:
    """Create a FastAPI application that receives events.

    Args:
        settings: Optional settings. Uses environment if None.
        emitter: EventAdapter or bare event consumer. An empty
            EventAdapter is used if None.

    Returns:
        Configured FastAPI application.

    Raises:
        ConfigurationError: If no signing secret is configured.

    Example:
        ```python
        adapter = EventAdapter(settings)

        @adapter.on("message")
        async def on_message(payload: dict) -> None: ...

        app = create_app(settings, adapter)
        # Run with: uvicorn myapp:app
        ```
    """
    if settings is None:
        settings = Settings()
    if emitter is None:
        emitter = EventAdapter(settings)

    emit = emitter.emit if isinstance(emitter, EventAdapter) else emitter
    handler = WebhookHandler(settings, emit)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(level=settings.log_level, format=settings.log_format)
        logger.info("Listening for events", path=settings.events_path)
        yield

    app = FastAPI(
        title="Switchboard Events",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.include_router(create_events_router(handler, settings.events_path))
    return app
