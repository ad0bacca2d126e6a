"""
Protocol handler interface for the client layer.

A protocol handler turns a Request into a Response for the URL
schemes it is registered for. The client layer picks the handler by
scheme and passes the caller's content sink through to it.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Union

from .http_primitives import Request, Response

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[bytes, Response], None]
Sink = Union[None, ChunkCallback, str, "os.PathLike[str]"]
Pull = Callable[[], bytes]


class ProtocolHandler(ABC):
    """
    Interface for protocol handler implementations.

    ``request`` must not return before the response status and headers
    (or a definitive failure) are known, and must deliver the body
    through ``collect``.
    """

    @abstractmethod
    def request(
        self,
        request: Request,
        proxy: Optional[str] = None,
        sink: Sink = None,
        size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        """
        Perform ``request``.

        Args:
            request: The request to send.
            proxy: Optional proxy URL to send it through.
            sink: Where body chunks go, see ``collect``.
            size: Optional read-size hint.
            timeout: Optional timeout in seconds for the whole request.

        Returns:
            The populated response.
        """
        pass

    def close(self) -> None:
        """Release resources held by the handler."""

    def collect(self, sink: Sink, response: Response, pull: Pull) -> Response:
        """
        Drain the body through ``pull`` into ``sink``.

        ``pull`` returns one chunk per call and b"" at the end. The sink
        only sees the body of successful responses:

        - None: the body is buffered into ``response.content``.
        - a callable: called as ``sink(chunk, response)`` per chunk.
        - a path: the body is written to that file.

        For any other status the body is buffered into the response so
        the client layer can inspect it.
        """
        if sink is None or not response.is_success:
            response.content = self._read_all(pull)
        elif callable(sink):
            while True:
                chunk = pull()
                if not chunk:
                    break
                sink(chunk, response)
        else:
            with open(sink, "wb") as f:
                while True:
                    chunk = pull()
                    if not chunk:
                        break
                    f.write(chunk)
            logger.debug(f"Saved response body to {os.fspath(sink)}")
        return response

    @staticmethod
    def _read_all(pull: Pull) -> bytes:
        chunks: List[bytes] = []
        while True:
            chunk = pull()
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)
