"""Outbound client for platform API methods.

Example:
    ```python
    from switchboard.client import WebClient

    async with WebClient() as client:
        result = await client.call("auth.test")
    ```
"""

from .models import CallOptions, CallRequest, CallResult, TransportResponse
from .queue import QueuedTask, RequestQueue
from .transport import HTTPTransport, Transport
from .web_client import WebClient

__all__ = [
    "CallOptions",
    "CallRequest",
    "CallResult",
    "HTTPTransport",
    "QueuedTask",
    "RequestQueue",
    "Transport",
    "TransportResponse",
    "WebClient",
]
