"""
Transport interface for c_http_bridge.

A transport performs HTTP requests on its own event loop and reports
progress through three callbacks. This module defines that contract,
the parameters a transport receives and the guard it hands back.
"""

import concurrent.futures
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional, Union

from ..tls import TLSContext

logger = logging.getLogger(__name__)

# Raw header mapping reported by a transport: lowercase wire names
# (duplicates joined with ","), plus capitalized pseudo-fields.
RawHeaders = Dict[str, Any]

OnHeader = Callable[[RawHeaders], bool]
OnBody = Callable[[bytes, RawHeaders], Union[bool, Awaitable[bool]]]
OnComplete = Callable[[Optional[bytes], RawHeaders], None]

# Synthetic status codes for failures that never produced a real response.
STATUS_CANCELLED = 598
STATUS_INTERNAL_ERROR = 599


class ProxyTarget(NamedTuple):
    """Proxy endpoint as (host, port, scheme)."""
    host: str
    port: int
    scheme: str


@dataclass(frozen=True)
class TransportParams:
    """Everything a transport needs to issue one request."""

    method: str
    url: str
    headers: Dict[str, Optional[str]] = field(default_factory=dict)
    body: Optional[bytes] = None
    proxy: Optional[ProxyTarget] = None
    tls: Optional[TLSContext] = None
    timeout: Optional[float] = None
    read_size: Optional[int] = None
    max_read_size: Optional[int] = None
    recurse: int = 0


class RequestGuard:
    """
    Cancellation handle for one in-flight request.

    The transfer is aborted when the guard is cancelled or garbage
    collected, so whoever owns the request must keep a reference
    until the completion callback has fired.
    """

    def __init__(self, future: "concurrent.futures.Future[Any]") -> None:
        self._future = future

    def cancel(self) -> bool:
        """Abort the transfer. Returns False if it already finished."""
        return self._future.cancel()

    @property
    def done(self) -> bool:
        return self._future.done()

    def __del__(self) -> None:
        future = getattr(self, "_future", None)
        if future is not None and not future.done():
            logger.debug("Request guard released before completion, aborting transfer")
            future.cancel()


class AsyncTransport(ABC):
    """
    Interface for callback-driven HTTP transports.

    All callbacks run on the transport's event loop thread:

    - ``on_header(raw)`` once headers arrive; returning False aborts.
    - ``on_body(chunk, raw)`` per body chunk, after ``on_header``; it may
      return an awaitable, which the transport awaits before reading on.
      Returning False aborts.
    - ``on_complete(body_or_none, raw)`` exactly once, last, whether the
      request succeeded (``b""``) or failed (``None``). On failure
      ``raw["Status"]`` carries a synthetic 59x code.
    """

    # Prefix used to namespace capitalized pseudo-headers in responses.
    pseudo_header_prefix = "X"

    @abstractmethod
    def issue(
        self,
        params: TransportParams,
        *,
        on_header: OnHeader,
        on_body: OnBody,
        on_complete: OnComplete,
    ) -> RequestGuard:
        """
        Start a request and return its guard immediately.

        Args:
            params: Translated request parameters.
            on_header: Header-arrival callback.
            on_body: Body-chunk callback.
            on_complete: Completion callback.

        Returns:
            The RequestGuard controlling the transfer.
        """
        pass

    @abstractmethod
    def in_loop_thread(self) -> bool:
        """Check whether the caller is running on the transport's loop thread."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop the transport and release its event loop."""
        pass
