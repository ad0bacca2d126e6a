"""
Network layer for the asyncio transport.

Defines the NetworkStream and NetworkBackend interfaces used by
HTTP11Connection, and their asyncio streams implementation.
"""

import asyncio
import logging
import ssl
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..exceptions import ConnectionError, ProtocolError

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 65536


class NetworkStream(ABC):
    """
    Interface for network streams with async I/O operations.

    This interface defines the contract that all network stream implementations
    must follow for reading, writing and upgrading connections.
    """

    @abstractmethod
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read data from the stream.

        Args:
            max_bytes: Maximum number of bytes to read.

        Returns:
            The data read, or b"" once the peer has closed the connection.
        """
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write data to the stream and wait until it is flushed."""
        pass

    @abstractmethod
    async def start_tls(
        self, ssl_context: ssl.SSLContext, server_hostname: str
    ) -> "NetworkStream":
        """
        Upgrade the stream to TLS in place.

        Returns:
            The upgraded stream (may be ``self``).
        """
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """Close the stream and cleanup resources."""
        pass

    @abstractmethod
    def get_extra_info(self, name: str) -> Optional[Any]:
        """Get transport information such as "peername" or "ssl_object"."""
        pass

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        pass


class NetworkBackend(ABC):
    """Interface for creating TCP connections and upgrading them to TLS."""

    @abstractmethod
    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        """
        Connect to a TCP endpoint.

        Raises:
            ConnectionError: If the connection fails or times out.
        """
        pass

    async def connect_tls(
        self,
        stream: NetworkStream,
        host: str,
        ssl_context: ssl.SSLContext,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        """
        Upgrade a TCP stream to TLS.

        Raises:
            ProtocolError: If the TLS handshake fails or times out.
        """
        try:
            return await asyncio.wait_for(
                stream.start_tls(ssl_context, server_hostname=host), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ProtocolError(f"TLS handshake with {host} timed out", cause=e) from e
        except (ssl.SSLError, ssl.CertificateError, OSError) as e:
            raise ProtocolError(f"TLS handshake with {host} failed: {e}", cause=e) from e


class AsyncIOStream(NetworkStream):
    """NetworkStream backed by asyncio StreamReader/StreamWriter."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self._closed:
            raise RuntimeError("Stream is closed")
        return await self._reader.read(max_bytes or DEFAULT_READ_SIZE)

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")
        self._writer.write(data)
        await self._writer.drain()

    async def start_tls(
        self, ssl_context: ssl.SSLContext, server_hostname: str
    ) -> "AsyncIOStream":
        await self._writer.start_tls(ssl_context, server_hostname=server_hostname)
        return self

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, ssl.SSLError) as e:
            logger.debug(f"Ignoring error while closing stream: {e}")

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._writer.get_extra_info(name)

    @property
    def is_closed(self) -> bool:
        return self._closed


class AsyncIONetworkBackend(NetworkBackend):
    """Network backend using asyncio.open_connection."""

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
    ) -> AsyncIOStream:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ConnectionError(f"Connection to {host}:{port} timed out", cause=e) from e
        except OSError as e:
            raise ConnectionError(f"{host}:{port}: {e.strerror or e}", cause=e) from e

        logger.debug(f"Connected to {host}:{port}")
        return AsyncIOStream(reader, writer)
