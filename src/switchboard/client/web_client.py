"""Outbound dispatcher for platform API methods.

Every call is queued on a RequestQueue, and once admitted runs inside the
RetryController around a single transport request. Callers get either a
successful CallResult or a classified error.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Mapping
from functools import partial
from types import TracebackType
from typing import Any

from switchboard.client.models import (
    CallOptions,
    CallRequest,
    CallResult,
    ParameterValue,
    TransportResponse,
)
from switchboard.client.queue import RequestQueue
from switchboard.client.transport import HTTPTransport, Transport
from switchboard.config import Settings
from switchboard.exceptions import (
    ConfigurationError,
    PlatformError,
    RateLimitedError,
    TransportError,
)
from switchboard.logging import get_logger
from switchboard.retry import (
    RetryController,
    RetryPolicy,
    RetryPredicate,
    default_is_retryable,
    get_retry_policy,
)
from switchboard.utils import package_identifier

logger = get_logger(__name__)

ResultCallback = Callable[[BaseException | None, CallResult | None], None]

# Platform error code that signals a rate limit inside an HTTP 200 body
RATE_LIMITED_ERROR_CODE = "ratelimited"


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _deliver_to_callback(callback: ResultCallback, future: asyncio.Future[CallResult]) -> None:
    """Hand a finished call to a callback exactly once: error or result, never both."""
    try:
        result = future.result()
    except (asyncio.CancelledError, Exception) as e:
        callback(e, None)
        return
    callback(None, result)


class WebClient:
    """A client for the platform's Web API.

    Example:
        ```python
        async with WebClient(Settings(token="xoxb-...")) as client:
            result = await client.call("chat.postMessage", {"channel": "C123", "text": "hi"})
            print(result["ts"])
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: Transport | None = None,
        retry_policy: RetryPolicy | None = None,
        is_retryable: RetryPredicate = default_is_retryable,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Client configuration. Loaded from the environment if None.
            transport: Transport to send requests with. Defaults to HTTPTransport.
            retry_policy: Overrides the policy named in settings.
            is_retryable: Classifies failures as retryable or terminal.
            sleep: Awaitable sleep used between retries.
        """
        self.settings = settings if settings is not None else Settings()
        self._transport: Transport = transport or HTTPTransport(
            timeout_seconds=self.settings.request_timeout_seconds
        )
        self._retry_policy = retry_policy or get_retry_policy(self.settings.retry_policy)
        self._is_retryable = is_retryable
        self._queue = RequestQueue(concurrency=self.settings.max_request_concurrency)
        self._retry = RetryController(sleep=sleep)
        self._user_agent = package_identifier()
        self._callback_tasks: set[asyncio.Future[CallResult]] = set()

        logger.debug(
            "WebClient initialized",
            api_url=self.api_url,
            max_request_concurrency=self.settings.max_request_concurrency,
        )

    @property
    def api_url(self) -> str:
        return self.settings.api_url

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    def call(
        self,
        method: str,
        parameters: Mapping[str, ParameterValue] | None = None,
        *,
        options: CallOptions | None = None,
        callback: ResultCallback | None = None,
    ) -> Awaitable[CallResult] | None:
        """Call an API method.

        The request joins the queue before this returns, so a later close()
        or aclose() still runs it. Without a callback the returned awaitable
        resolves to the CallResult. With a callback, the callback later
        receives (error, None) or (None, result), and nothing is returned.

        Must be called from within a running event loop. In callback mode a
        missing loop is reported to the callback as a ConfigurationError.

        Args:
            method: API method name, e.g. "chat.postMessage".
            parameters: Method arguments.
            options: Per-call overrides.
            callback: Optional completion callback.

        Returns:
            An awaitable CallResult, or None in callback mode.

        Raises:
            PlatformError: The platform reported a failure.
            RetriesExhaustedError: A bounded retry policy ran out of attempts.
            QueueClosedError: The client has been closed.
        """
        if callback is None:
            return self._submit(method, parameters, options)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback(ConfigurationError("WebClient.call requires a running event loop"), None)
            return None

        try:
            future = self._submit(method, parameters, options)
        except Exception as e:
            future = loop.create_future()
            future.set_exception(e)

        self._callback_tasks.add(future)
        future.add_done_callback(partial(_deliver_to_callback, callback))
        future.add_done_callback(self._callback_tasks.discard)
        return None

    def _submit(
        self,
        method: str,
        parameters: Mapping[str, ParameterValue] | None,
        options: CallOptions | None,
    ) -> asyncio.Future[CallResult]:
        request = CallRequest(method=method, parameters=dict(parameters or {}), options=options)
        policy = (options.retry_policy if options else None) or self._retry_policy

        future = self._queue.submit(partial(self._execute, request, policy))
        logger.debug("API call queued", method=method, pending=self._queue.pending)
        return future

    async def _execute(self, request: CallRequest, policy: RetryPolicy) -> CallResult:
        result = await self._retry.execute(
            partial(self._perform, request), policy, self._is_retryable
        )
        logger.debug("API call complete", method=request.method)
        return result

    async def _perform(self, request: CallRequest) -> CallResult:
        """Run one attempt: send, parse, classify."""
        headers = {"User-Agent": self._user_agent}
        if self.settings.token is not None:
            headers["Authorization"] = f"Bearer {self.settings.token.get_secret_value()}"

        response = await self._transport.send(
            f"{self.api_url}{request.method}",
            request.form_data(),
            headers,
            timeout=request.options.timeout if request.options else None,
        )
        return self._classify(request, response)

    def _classify(self, request: CallRequest, response: TransportResponse) -> CallResult:
        retry_after = _parse_retry_after(response.headers.get("retry-after"))

        if response.status_code == 429:
            logger.warning("API call rate limited", method=request.method, retry_after=retry_after)
            raise RateLimitedError(retry_after)
        if response.status_code >= 500:
            raise TransportError(f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            payload: Any = response.parse_json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(
                "API response was not valid JSON",
                method=request.method,
                status_code=response.status_code,
            )
            raise PlatformError("invalid_response") from e
        if not isinstance(payload, dict):
            raise PlatformError("invalid_response")

        result = CallResult.from_payload(payload)
        if result.ok:
            warning = payload.get("warning")
            if warning:
                logger.warning("API call returned a warning", method=request.method, warning=warning)
            return result
        if result.error == RATE_LIMITED_ERROR_CODE:
            raise RateLimitedError(retry_after)
        raise PlatformError(result.error or "unknown_error", result)

    def close(self) -> None:
        """Stop accepting new calls. Calls already queued still run."""
        self._queue.close()

    async def aclose(self) -> None:
        """Stop accepting calls, wait for queued ones, and release the transport."""
        self._queue.close()
        await self._queue.join()
        if self._callback_tasks:
            await asyncio.gather(*self._callback_tasks, return_exceptions=True)
        await self._transport.aclose()

    async def __aenter__(self) -> WebClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
