"""
Streaming of response bodies to synchronous consumers.

This module provides the pull side of a bridged response: each read
takes exactly one chunk from the request's ChunkChannel, so reading
is what lets the transport receive more data.
"""

import logging
from typing import Iterator, List, Optional

from .channel import END_OF_STREAM, ChunkChannel
from .exceptions import StreamError
from .transport.base import RequestGuard

logger = logging.getLogger(__name__)


class ResponseStream:
    """
    Blocking iterator over the body chunks of one response.

    The stream owns the transport's RequestGuard. Dropping the guard
    aborts the transfer, so it is held here until the end marker has
    been read or the stream is closed.
    """

    def __init__(
        self,
        channel: ChunkChannel,
        guard: Optional[RequestGuard] = None,
    ) -> None:
        """
        Initialize ResponseStream.

        Args:
            channel: The channel the transport's body callback feeds
            guard: The transport handle to keep alive while reading
        """
        self._channel = channel
        self._guard = guard
        self._finished = False
        self._closed = False
        self._bytes_read = 0
        self._chunks_read = 0

    def read_chunk(self, timeout: Optional[float] = None) -> bytes:
        """
        Read the next chunk, blocking the calling thread.

        Returns:
            The next chunk, or END_OF_STREAM (b"") at the end of the body
        """
        if self._closed:
            raise StreamError("Cannot read from closed stream")

        if self._finished:
            return END_OF_STREAM

        chunk = self._channel.take(timeout)
        if chunk == END_OF_STREAM:
            self._finish()
            return END_OF_STREAM

        self._bytes_read += len(chunk)
        self._chunks_read += 1
        return chunk

    def _finish(self) -> None:
        self._finished = True
        self._guard = None
        logger.debug(f"Response stream finished after {self._bytes_read} bytes")

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read_chunk()
            if not chunk:
                return
            yield chunk

    def read(self) -> bytes:
        """Read the rest of the body and return it as bytes."""
        chunks: List[bytes] = []
        for chunk in self:
            chunks.append(chunk)
        return b"".join(chunks)

    def close(self) -> None:
        """
        Stop reading. An unfinished transfer is cancelled.
        """
        if self._closed:
            return
        self._closed = True
        if not self._finished and self._guard is not None:
            logger.debug("Response stream closed early, cancelling transfer")
            self._guard.cancel()
        self._guard = None

    def __enter__(self) -> "ResponseStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def finished(self) -> bool:
        """Whether the end marker has been read."""
        return self._finished

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def bytes_read(self) -> int:
        return self._bytes_read

    @property
    def chunks_read(self) -> int:
        return self._chunks_read
