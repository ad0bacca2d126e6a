"""
Bounded chunk channel between an event loop and a blocking consumer.

The producer runs on the transport's event loop and awaits ``put``;
the consumer runs on its own thread and blocks in ``take``. The
channel holds at most one unread chunk, so a producer that gets
ahead of its consumer is suspended until the chunk is taken.
"""

import asyncio
import logging
import threading
from typing import Optional

from .exceptions import StreamError

logger = logging.getLogger(__name__)

END_OF_STREAM = b""


def _wake(future: "asyncio.Future[None]") -> None:
    if not future.done():
        future.set_result(None)


class ChunkChannel:
    """Single-producer, single-consumer channel of capacity one."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._slot: Optional[bytes] = None
        self._closed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._space: Optional["asyncio.Future[None]"] = None

    async def put(self, chunk: bytes) -> None:
        """
        Store a chunk, waiting until the previous one has been taken.

        Must be awaited on an event loop. Only the awaiting task is
        suspended; the loop keeps running.

        Raises:
            StreamError: If the channel was already closed
            ValueError: If ``chunk`` is empty (reserved for the end marker)
        """
        if not chunk:
            raise ValueError("empty chunks are reserved for the end marker")

        loop = asyncio.get_running_loop()
        while True:
            with self._cond:
                if self._closed:
                    raise StreamError("Cannot put into a closed channel")
                if self._slot is None:
                    self._slot = chunk
                    self._cond.notify_all()
                    return
                self._loop = loop
                self._space = loop.create_future()
                space = self._space
            await space

    def close(self) -> None:
        """
        Push the end marker.

        Never blocks: the marker is delivered after any chunk still in
        the slot. Safe to call from any thread; repeated calls are no-ops.
        """
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()

    def take(self, timeout: Optional[float] = None) -> bytes:
        """
        Remove and return the next chunk, blocking the calling thread.

        Returns:
            The next chunk, or END_OF_STREAM once the channel is closed
            and drained (and on every call after that)

        Raises:
            StreamError: If ``timeout`` expires first
        """
        with self._cond:
            while self._slot is None:
                if self._closed:
                    return END_OF_STREAM
                if not self._cond.wait(timeout):
                    raise StreamError(f"No chunk available after {timeout}s")
            chunk, self._slot = self._slot, None
            space, self._space = self._space, None
            loop = self._loop

        if space is not None and loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(_wake, space)
        return chunk

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of unread chunks (0 or 1)."""
        return 0 if self._slot is None else 1
