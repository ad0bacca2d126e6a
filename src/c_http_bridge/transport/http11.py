"""
HTTP/1.1 exchange implementation for the asyncio transport.

This module implements the HTTP11Connection class that drives one
request/response cycle over a NetworkStream using h11.
"""

import logging
from enum import Enum
from typing import AsyncIterator, List, NamedTuple, Optional, Tuple

import h11

from .network import NetworkStream, DEFAULT_READ_SIZE
from ..exceptions import ProtocolError, StreamError

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """States of an HTTP/1.1 exchange."""
    NEW = "new"                    # Nothing sent yet
    REQUEST_SENT = "request_sent"  # Request fully written
    RECEIVING = "receiving"        # Response head received, body pending
    DONE = "done"                  # Response body fully received
    CLOSED = "closed"              # Stream closed


class ResponseHead(NamedTuple):
    """Status line and headers of a response."""
    http_version: str
    status_code: int
    reason: str
    headers: List[Tuple[str, str]]


class HTTP11Connection:
    """
    HTTP/1.1 exchange over a NetworkStream.

    Connections are not reused: each instance sends one request,
    reads one response and is then closed.
    """

    def __init__(
        self,
        stream: NetworkStream,
        read_size: Optional[int] = None,
        max_read_size: Optional[int] = None,
    ) -> None:
        """
        Initialize HTTP/1.1 connection.

        Args:
            stream: The NetworkStream to use for communication
            read_size: Bytes requested from the network per read
            max_read_size: Upper bound on the size of yielded body chunks
        """
        self._stream = stream
        self._h11_connection = h11.Connection(h11.CLIENT)
        self._state = ConnectionState.NEW
        self._read_size = read_size or DEFAULT_READ_SIZE
        self._max_read_size = max_read_size

        self._bytes_sent = 0
        self._bytes_received = 0

    async def send_request(
        self,
        method: str,
        target: str,
        headers: List[Tuple[str, str]],
        body: Optional[bytes] = None,
    ) -> None:
        """
        Send the request head and body.

        Raises:
            ProtocolError: If the request is invalid or cannot be written
        """
        try:
            await self._send_event(h11.Request(method=method, target=target, headers=headers))
            if body:
                await self._send_event(h11.Data(data=body))
            await self._send_event(h11.EndOfMessage())
        except h11.LocalProtocolError as e:
            raise ProtocolError(f"Invalid request: {e}", cause=e) from e
        except OSError as e:
            raise ProtocolError(f"Failed to send request: {e}", cause=e) from e

        self._state = ConnectionState.REQUEST_SENT

    async def _send_event(self, event: h11.Event) -> None:
        data = self._h11_connection.send(event)
        if data:
            await self._stream.write(data)
            self._bytes_sent += len(data)

    async def _receive_data(self) -> None:
        data = await self._stream.read(self._read_size)
        # b"" tells h11 the peer closed, which ends close-delimited bodies.
        self._h11_connection.receive_data(data)
        self._bytes_received += len(data)

    async def receive_response_head(self) -> ResponseHead:
        """
        Read events until the final (non-1xx) response head.

        Raises:
            ProtocolError: On malformed or truncated response heads
        """
        try:
            while True:
                event = self._h11_connection.next_event()

                if event is h11.NEED_DATA:
                    await self._receive_data()
                    continue

                if isinstance(event, h11.InformationalResponse):
                    continue

                if isinstance(event, h11.Response):
                    self._state = ConnectionState.RECEIVING
                    return ResponseHead(
                        http_version=event.http_version.decode("ascii"),
                        status_code=event.status_code,
                        reason=event.reason.decode("latin-1"),
                        headers=[
                            (name.decode("latin-1"), value.decode("latin-1"))
                            for name, value in event.headers
                        ],
                    )

                if isinstance(event, h11.ConnectionClosed):
                    raise ProtocolError("Connection closed before response headers")
        except h11.RemoteProtocolError as e:
            raise ProtocolError(f"Malformed response: {e}", cause=e) from e
        except OSError as e:
            raise ProtocolError(f"Failed to read response: {e}", cause=e) from e

    async def iter_body(self) -> AsyncIterator[bytes]:
        """
        Yield response body chunks until the end of the message.

        Raises:
            StreamError: If the body is truncated or the read fails
        """
        try:
            while True:
                event = self._h11_connection.next_event()

                if event is h11.NEED_DATA:
                    await self._receive_data()
                    continue

                if isinstance(event, h11.Data):
                    for chunk in self._split(bytes(event.data)):
                        yield chunk
                    continue

                if isinstance(event, h11.EndOfMessage):
                    self._state = ConnectionState.DONE
                    return

                if isinstance(event, h11.ConnectionClosed):
                    raise StreamError("Connection closed before end of body")
        except h11.RemoteProtocolError as e:
            raise StreamError(f"Malformed response body: {e}", cause=e) from e
        except OSError as e:
            raise StreamError(f"Failed to read response body: {e}", cause=e) from e

    def _split(self, data: bytes) -> List[bytes]:
        size = self._max_read_size
        if not size or len(data) <= size:
            return [data]
        return [data[i:i + size] for i in range(0, len(data), size)]

    async def aclose(self) -> None:
        """Close the underlying stream."""
        if self._state != ConnectionState.CLOSED:
            self._state = ConnectionState.CLOSED
            await self._stream.aclose()

        logger.debug(
            f"Connection closed (sent {self._bytes_sent} bytes, "
            f"received {self._bytes_received} bytes)"
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def bytes_sent(self) -> int:
        return self._bytes_sent

    @property
    def bytes_received(self) -> int:
        return self._bytes_received
