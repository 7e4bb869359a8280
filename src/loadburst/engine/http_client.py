"""Timed HTTP client that turns one request into one Outcome."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import aiohttp

from loadburst._internal.logging import get_logger
from loadburst.metrics.outcome import ErrorKind, Failure, Success

if TYPE_CHECKING:
    from loadburst.metrics.outcome import Outcome
    from loadburst.request.template import RequestTemplate

logger = get_logger("engine.http_client")

_READ_CHUNK = 64 * 1024


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised while sending a request to an ErrorKind.

    Timeouts are checked first because aiohttp's ``ServerTimeoutError`` is
    also a connection error.
    """
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, aiohttp.ClientConnectionError):
        return ErrorKind.CONNECTION
    return ErrorKind.PROTOCOL


class HttpClient:
    """Instrumented async HTTP client wrapping ``aiohttp.ClientSession``.

    ``send`` never raises for network or protocol problems: every attempt
    becomes either a ``Success`` carrying the status code, or a ``Failure``
    carrying an ErrorKind. Only task cancellation propagates.

    Attributes:
        timeout: Per-request timeout in seconds.
        pool_size: Maximum open connections, normally the concurrency limit.
        keepalive: Reuse connections between requests.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        pool_size: int = 100,
        keepalive: bool = True,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: Per-request timeout in seconds, covering connect,
                send and reading the whole body.
            pool_size: Connection pool size.
            keepalive: If False, close the connection after every request.
        """
        self.timeout = timeout
        self.pool_size = pool_size
        self.keepalive = keepalive
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        connector = aiohttp.TCPConnector(
            limit=self.pool_size,
            force_close=not self.keepalive,
        )
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            auto_decompress=False,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def send(self, template: RequestTemplate) -> Outcome:
        """Send one request built from ``template`` and time it.

        The body is streamed and discarded; only its size is kept. Latency
        runs from just before the request is issued until the last body
        byte has been read.

        Args:
            template: Request to send.

        Returns:
            Success with status code and body size, or Failure with the
            error kind.

        Raises:
            RuntimeError: If the client is used outside ``async with``.
            asyncio.CancelledError: If the attempt is cancelled.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        start = time.perf_counter()
        try:
            async with self._session.request(
                template.method.value,
                template.url,
                headers=template.headers,
                data=template.body,
                allow_redirects=False,
            ) as resp:
                byte_count = 0
                async for chunk in resp.content.iter_chunked(_READ_CHUNK):
                    byte_count += len(chunk)
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as exc:
            latency_ms = (time.perf_counter() - start) * 1000
            kind = classify_error(exc)
            logger.debug("Request failed (%s): %s: %s", kind.value, type(exc).__name__, exc)
            return Failure(kind=kind, latency_ms=latency_ms, message=f"{type(exc).__name__}: {exc}")

        return Success(
            status=status,
            latency_ms=(time.perf_counter() - start) * 1000,
            byte_count=byte_count,
        )
