"""
Callback-driven HTTP transport on an asyncio event loop.

AsyncIOTransport runs every request as a task on an EventLoopThread
and reports progress through on_header/on_body/on_complete callbacks.
Failures never raise to the issuer: they end in on_complete with a
synthetic 59x status.
"""

import asyncio
import inspect
import logging
from typing import Dict, List, Optional, Tuple

from .. import __version__
from ..exceptions import ConnectionError, ProtocolError, TimeoutError, TransportError
from ..http_primitives import URLComponents
from ..tls import create_ssl_context
from .base import (
    AsyncTransport,
    OnBody,
    OnComplete,
    OnHeader,
    RawHeaders,
    RequestGuard,
    TransportParams,
    STATUS_CANCELLED,
    STATUS_INTERNAL_ERROR,
)
from .http11 import HTTP11Connection
from .loop import EventLoopThread
from .network import AsyncIONetworkBackend, NetworkBackend, NetworkStream

logger = logging.getLogger(__name__)


class _Aborted(Exception):
    """A callback asked the transport to stop."""


class AsyncIOTransport(AsyncTransport):
    """
    HTTP/1.1 transport driven by asyncio and h11.

    Each request opens its own connection; there is no pooling.
    Redirects are never followed here, whatever ``params.recurse`` says.
    """

    DEFAULT_USER_AGENT = f"c_http_bridge/{__version__}"
    DEFAULT_CONNECT_TIMEOUT = 60.0

    pseudo_header_prefix = "AIO"

    def __init__(
        self,
        backend: Optional[NetworkBackend] = None,
        loop: Optional[EventLoopThread] = None,
        default_headers: Optional[Dict[str, str]] = None,
        connect_timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            backend: Network backend for TCP/TLS (asyncio streams by default)
            loop: Event loop thread to run on; a private one is created if omitted
            default_headers: Headers added when the request does not set them
            connect_timeout: Timeout for connection establishment in seconds
        """
        self._backend = backend or AsyncIONetworkBackend()
        self._owns_loop = loop is None
        self._loop = loop or EventLoopThread()
        if default_headers is None:
            default_headers = {"user-agent": self.DEFAULT_USER_AGENT}
        self._default_headers = default_headers
        self._connect_timeout = self.DEFAULT_CONNECT_TIMEOUT if connect_timeout is None else connect_timeout

    def issue(
        self,
        params: TransportParams,
        *,
        on_header: OnHeader,
        on_body: OnBody,
        on_complete: OnComplete,
    ) -> RequestGuard:
        future = self._loop.submit(self._run(params, on_header, on_body, on_complete))
        logger.debug(f"Issued {params.method} {params.url}")
        return RequestGuard(future)

    def in_loop_thread(self) -> bool:
        return self._loop.is_current()

    def close(self) -> None:
        if self._owns_loop:
            self._loop.stop()

    async def _run(
        self,
        params: TransportParams,
        on_header: OnHeader,
        on_body: OnBody,
        on_complete: OnComplete,
    ) -> None:
        raw: RawHeaders = {"URL": params.url}
        body: Optional[bytes] = None
        try:
            if params.timeout is not None:
                await asyncio.wait_for(
                    self._exchange(params, raw, on_header, on_body), timeout=params.timeout
                )
            else:
                await self._exchange(params, raw, on_header, on_body)
            body = b""
        except asyncio.CancelledError:
            self._fail(raw, STATUS_CANCELLED, "Request cancelled")
            self._complete(on_complete, None, raw)
            raise
        except asyncio.TimeoutError:
            error = TimeoutError("Request timed out", timeout=params.timeout)
            self._fail(raw, error.status, error.reason)
        except _Aborted as e:
            self._fail(raw, STATUS_CANCELLED, str(e))
        except TransportError as e:
            self._fail(raw, e.status, e.reason)
        except Exception as e:
            logger.exception(f"Unexpected error during {params.method} {params.url}")
            self._fail(raw, STATUS_INTERNAL_ERROR, f"Internal error: {e}")

        self._complete(on_complete, body, raw)

    def _fail(self, raw: RawHeaders, status: int, reason: str) -> None:
        logger.warning(f"Request to {raw.get('URL')} failed: {status} {reason}")
        raw["Status"] = status
        raw["Reason"] = reason

    def _complete(self, on_complete: OnComplete, body: Optional[bytes], raw: RawHeaders) -> None:
        try:
            on_complete(body, raw)
        except Exception:
            logger.exception(f"Completion callback failed for {raw.get('URL')}")

    async def _exchange(
        self,
        params: TransportParams,
        raw: RawHeaders,
        on_header: OnHeader,
        on_body: OnBody,
    ) -> None:
        url = URLComponents.from_url(params.url)
        stream = await self._connect(url, params)
        connection = HTTP11Connection(
            stream, read_size=params.read_size, max_read_size=params.max_read_size
        )
        try:
            target = str(url) if self._is_forward_proxied(url, params) else url.target
            await connection.send_request(
                params.method, target, self._build_headers(url, params), params.body
            )

            head = await connection.receive_response_head()
            raw.update(self._join_headers(head.headers))
            raw["HTTPVersion"] = head.http_version
            raw["Status"] = head.status_code
            raw["Reason"] = head.reason
            logger.debug(f"{params.method} {params.url} -> {head.status_code} {head.reason}")

            if not on_header(raw):
                raise _Aborted("Request cancelled by on_header")

            async for chunk in connection.iter_body():
                result = on_body(chunk, raw)
                if inspect.isawaitable(result):
                    result = await result
                if not result:
                    raise _Aborted("Request cancelled by on_body")
        finally:
            await connection.aclose()

    def _is_forward_proxied(self, url: URLComponents, params: TransportParams) -> bool:
        return params.proxy is not None and url.scheme == "http"

    async def _connect(self, url: URLComponents, params: TransportParams) -> NetworkStream:
        proxy = params.proxy
        host, port = (url.host, url.port) if proxy is None else (proxy.host, proxy.port)
        stream = await self._backend.connect_tcp(host, port, self._connect_timeout)
        try:
            if proxy is not None and url.scheme == "https":
                await self._open_tunnel(stream, url)

            if url.scheme == "https":
                if params.tls is None:
                    raise ProtocolError("https request issued without a TLS context")
                try:
                    ssl_context = create_ssl_context(params.tls)
                except OSError as e:
                    raise ProtocolError(f"Cannot load CA bundle: {e}", cause=e) from e
                stream = await self._backend.connect_tls(
                    stream, url.host, ssl_context, self._connect_timeout
                )
        except BaseException:
            await stream.aclose()
            raise
        return stream

    async def _open_tunnel(self, stream: NetworkStream, url: URLComponents) -> None:
        authority = f"{url.host}:{url.port}"
        request = f"CONNECT {authority} HTTP/1.1\r\nHost: {authority}\r\n\r\n"
        try:
            await stream.write(request.encode("ascii"))
            response = b""
            while b"\r\n\r\n" not in response:
                data = await stream.read(4096)
                if not data:
                    raise ConnectionError(f"Proxy closed connection during CONNECT {authority}")
                response += data
        except OSError as e:
            raise ConnectionError(f"Proxy CONNECT {authority} failed: {e}", cause=e) from e

        status_line = response.split(b"\r\n", 1)[0].decode("latin-1")
        parts = status_line.split(" ", 2)
        if len(parts) < 2 or not parts[1].isdigit() or not 200 <= int(parts[1]) < 300:
            raise ConnectionError(f"Proxy refused CONNECT {authority}: {status_line}")

    def _build_headers(self, url: URLComponents, params: TransportParams) -> List[Tuple[str, str]]:
        supplied = {name.lower() for name in params.headers}
        headers: List[Tuple[str, str]] = []

        if "host" not in supplied:
            headers.append(("host", url.netloc))
        for name, value in self._default_headers.items():
            if name.lower() not in supplied:
                headers.append((name, value))

        # None means "do not send", and also suppresses any default.
        for name, value in params.headers.items():
            if value is not None:
                headers.append((name, value))

        if params.body is not None and "content-length" not in supplied \
                and "transfer-encoding" not in supplied:
            headers.append(("content-length", str(len(params.body))))
        return headers

    @staticmethod
    def _join_headers(headers: List[Tuple[str, str]]) -> Dict[str, str]:
        joined: Dict[str, str] = {}
        for name, value in headers:
            name = name.lower()
            joined[name] = f"{joined[name]},{value}" if name in joined else value
        return joined
