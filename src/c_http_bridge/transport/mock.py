"""
Mock transport and network implementations for testing.

MockTransport plays back scripted exchanges through the transport
callbacks on a real event loop thread. MockNetworkBackend and
MockNetworkStream let AsyncIOTransport run without sockets.
"""

import asyncio
import inspect
import ssl
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import ConnectionError
from .base import (
    AsyncTransport,
    OnBody,
    OnComplete,
    OnHeader,
    RawHeaders,
    RequestGuard,
    TransportParams,
    STATUS_CANCELLED,
)
from .loop import EventLoopThread
from .network import NetworkBackend, NetworkStream


@dataclass
class MockExchange:
    """
    Scripted outcome of one request.

    Args:
        headers: Raw headers for on_header, or None to skip it entirely
            (a connection-level failure)
        chunks: Body chunks passed to on_body, in order
        final: Raw header updates applied before on_complete
        failed: Whether on_complete receives None instead of b""
        delay: Seconds to wait before reporting anything
    """

    headers: Optional[Dict[str, Any]] = None
    chunks: List[bytes] = field(default_factory=list)
    final: Dict[str, Any] = field(default_factory=dict)
    failed: bool = False
    delay: float = 0.0

    @classmethod
    def ok(cls, status: int = 200, reason: str = "OK", chunks: Optional[List[bytes]] = None,
           **headers: str) -> "MockExchange":
        raw: Dict[str, Any] = {"HTTPVersion": "1.1", "Status": status, "Reason": reason}
        raw.update({name.replace("_", "-"): value for name, value in headers.items()})
        return cls(headers=raw, chunks=list(chunks or []))

    @classmethod
    def unreachable(cls, reason: str = "Connection refused") -> "MockExchange":
        return cls(headers=None, final={"Status": 595, "Reason": reason}, failed=True)


class MockTransport(AsyncTransport):
    """
    Transport that replays MockExchange scripts.

    Exchanges are consumed in the order they were added; once the
    queue is empty every request gets an empty 200 response.
    """

    pseudo_header_prefix = "Mock"

    def __init__(self, exchanges: Optional[List[MockExchange]] = None) -> None:
        self._loop = EventLoopThread(name="mock-transport-loop")
        self._exchanges = list(exchanges or [])
        self.issued: List[TransportParams] = []
        self.events: List[str] = []
        self.chunks_delivered = 0
        self.completions = 0

    def add_exchange(self, exchange: MockExchange) -> None:
        self._exchanges.append(exchange)

    def issue(
        self,
        params: TransportParams,
        *,
        on_header: OnHeader,
        on_body: OnBody,
        on_complete: OnComplete,
    ) -> RequestGuard:
        self.issued.append(params)
        exchange = self._exchanges.pop(0) if self._exchanges else MockExchange.ok()
        future = self._loop.submit(self._play(exchange, params, on_header, on_body, on_complete))
        return RequestGuard(future)

    async def _play(
        self,
        exchange: MockExchange,
        params: TransportParams,
        on_header: OnHeader,
        on_body: OnBody,
        on_complete: OnComplete,
    ) -> None:
        raw: RawHeaders = {"URL": params.url}
        body: Optional[bytes] = None if exchange.failed else b""
        try:
            if exchange.delay:
                await asyncio.sleep(exchange.delay)
            if exchange.headers is not None:
                raw.update(exchange.headers)
                self.events.append("header")
                if on_header(raw):
                    for chunk in exchange.chunks:
                        result = on_body(chunk, raw)
                        if inspect.isawaitable(result):
                            result = await result
                        self.events.append("body")
                        self.chunks_delivered += 1
                        if not result:
                            break
            raw.update(exchange.final)
        except asyncio.CancelledError:
            raw.update({"Status": STATUS_CANCELLED, "Reason": "Request cancelled"})
            self._complete(on_complete, None, raw)
            raise
        self._complete(on_complete, body, raw)

    def _complete(self, on_complete: OnComplete, body: Optional[bytes], raw: RawHeaders) -> None:
        self.events.append("complete")
        self.completions += 1
        on_complete(body, raw)

    def in_loop_thread(self) -> bool:
        return self._loop.is_current()

    def close(self) -> None:
        self._loop.stop()


class MockNetworkStream(NetworkStream):
    """
    In-memory network stream.

    Reads return the queued data (in pieces of at most ``max_bytes``)
    and then b"", as if the peer had closed the connection.
    """

    def __init__(self, data: bytes = b"") -> None:
        self._data = data
        self._position = 0
        self._closed = False
        self._extra_info: Dict[str, Any] = {}
        self._write_buffer: List[bytes] = []
        self.read_sizes: List[Optional[int]] = []
        self.tls_hostname: Optional[str] = None

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self._closed:
            raise RuntimeError("Stream is closed")

        self.read_sizes.append(max_bytes)
        if self._position >= len(self._data):
            return b""

        end = len(self._data) if max_bytes is None else min(self._position + max_bytes, len(self._data))
        result = self._data[self._position:end]
        self._position = end
        return result

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        self._write_buffer.append(data)

    async def start_tls(
        self, ssl_context: ssl.SSLContext, server_hostname: str
    ) -> "MockNetworkStream":
        self.tls_hostname = server_hostname
        self._extra_info["ssl_object"] = True
        self._extra_info["ssl_context"] = ssl_context
        return self

    async def aclose(self) -> None:
        self._closed = True

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._extra_info.get(name)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def written_data(self) -> bytes:
        """Get all data that was written to the stream."""
        return b"".join(self._write_buffer)


class MockNetworkBackend(NetworkBackend):
    """
    Network backend handing out MockNetworkStreams.

    Each ``add_response`` queues one connection's worth of data for
    a (host, port); unknown endpoints are refused.
    """

    def __init__(self) -> None:
        self._responses: Dict[Tuple[str, int], List[bytes]] = {}
        self.connections: List[Tuple[Tuple[str, int], MockNetworkStream]] = []

    def add_response(self, host: str, port: int, data: bytes) -> None:
        self._responses.setdefault((host, port), []).append(data)

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
    ) -> MockNetworkStream:
        key = (host, port)
        queued = self._responses.get(key)
        if not queued:
            raise ConnectionError(f"{host}:{port}: Connection refused")

        stream = MockNetworkStream(queued.pop(0))
        stream._extra_info["peername"] = key
        self.connections.append((key, stream))
        return stream

    def get_connection(self, host: str, port: int) -> Optional[MockNetworkStream]:
        """Most recent stream opened to (host, port)."""
        for key, stream in reversed(self.connections):
            if key == (host, port):
                return stream
        return None
