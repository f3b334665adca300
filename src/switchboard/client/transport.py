"""HTTP transport for outbound API calls.

The transport only moves bytes: it posts a form-encoded body and hands back
the raw response. Classifying that response is the client's job.
"""

from __future__ import annotations

from typing import Protocol

import httpx

from switchboard.client.models import TransportResponse
from switchboard.exceptions import TransportError
from switchboard.logging import get_logger

logger = get_logger(__name__)


class Transport(Protocol):
    """Anything that can POST a form body and return the raw response."""

    async def send(
        self,
        url: str,
        data: dict[str, str],
        headers: dict[str, str],
        timeout: float | None = None,
    ) -> TransportResponse: ...

    async def aclose(self) -> None: ...


class HTTPTransport:
    """Transport backed by a shared httpx.AsyncClient.

    Connection and timeout failures are raised as TransportError so the
    retry controller can recognise them.
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout_seconds: Default per-request timeout.
            client: Optional pre-built client. The transport closes only
                clients it created itself.
        """
        self._timeout = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def send(
        self,
        url: str,
        data: dict[str, str],
        headers: dict[str, str],
        timeout: float | None = None,
    ) -> TransportResponse:
        """POST `data` to `url`.

        Args:
            url: Full method URL.
            data: Form fields.
            headers: Request headers.
            timeout: Per-request timeout override.

        Returns:
            The raw response.

        Raises:
            TransportError: On timeout or connection failure.
        """
        try:
            response = await self._client.post(
                url,
                data=data,
                headers=headers,
                timeout=timeout if timeout is not None else self._timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout: {url}") from e
        except httpx.TransportError as e:
            raise TransportError(f"Request failed: {e}") from e

        return TransportResponse(
            status_code=response.status_code,
            headers={key.lower(): value for key, value in response.headers.items()},
            body=response.content,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
