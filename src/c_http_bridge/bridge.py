"""
Synchronous protocol handler backed by a callback transport.

BridgedHTTPHandler issues a request on an AsyncTransport and blocks
the calling thread only until the response headers are known. The
body then flows through a capacity-1 ChunkChannel, one chunk per
pull, so the transport never runs ahead of the consumer by more than
a single chunk.
"""

import logging
import threading
from typing import Optional, Tuple

from .channel import ChunkChannel
from .http_primitives import Request, Response
from .normalizer import set_response_headers
from .protocol import ProtocolHandler, Sink
from .streams import ResponseStream
from .tls import CABundleResolver, system_ca_bundle
from .translator import build_transport_params
from .transport.base import AsyncTransport, RawHeaders

logger = logging.getLogger(__name__)


class BridgedHTTPHandler(ProtocolHandler):
    """Protocol handler for http and https on top of an AsyncTransport."""

    def __init__(
        self,
        transport: AsyncTransport,
        ca_bundle_resolver: Optional[CABundleResolver] = system_ca_bundle,
    ) -> None:
        """
        Initialize the handler.

        Args:
            transport: The callback transport performing the I/O
            ca_bundle_resolver: Default CA bundle lookup used when TLS
                verification is on and no CA file or path is given;
                None means no lookup is available
        """
        self._transport = transport
        self._ca_bundle_resolver = ca_bundle_resolver

    def perform(
        self,
        request: Request,
        proxy: Optional[str] = None,
        size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[Response, ResponseStream]:
        """
        Issue ``request`` and wait for its headers.

        Returns:
            The response, in its final state once the stream is drained,
            and the stream to pull the body from

        Raises:
            ConfigurationError: If TLS trust or the proxy cannot be set up;
                no I/O has happened in that case
            RuntimeError: If called on the transport's own loop thread
        """
        if self._transport.in_loop_thread():
            raise RuntimeError("Blocking request issued from the transport's event loop thread")

        params = build_transport_params(
            request,
            proxy=proxy,
            size=size,
            timeout=timeout,
            ca_bundle_resolver=self._ca_bundle_resolver,
        )

        # Replaced as soon as the transport reports anything.
        response = Response(code=599, message="Internal Server Error", request=request)
        channel = ChunkChannel()
        headers_ready = threading.Event()
        prefix = self._transport.pseudo_header_prefix

        def on_header(raw: RawHeaders) -> bool:
            set_response_headers(response, raw, prefix)
            headers_ready.set()
            return True

        async def on_body(chunk: bytes, raw: RawHeaders) -> bool:
            if chunk:
                await channel.put(bytes(chunk))
            return True

        def on_complete(body: Optional[bytes], raw: RawHeaders) -> None:
            # The status can change after on_header, or on_header may
            # never have run; this pass is authoritative.
            try:
                set_response_headers(response, raw, prefix)
            except Exception:
                logger.exception(f"Failed to apply final headers for {request.url}")
            finally:
                headers_ready.set()
                channel.close()

        guard = self._transport.issue(
            params,
            on_header=on_header,
            on_body=on_body,
            on_complete=on_complete,
        )

        headers_ready.wait()
        logger.debug(f"{request.method} {request.url} -> {response.status_line}")

        return response, ResponseStream(channel, guard)

    def request(
        self,
        request: Request,
        proxy: Optional[str] = None,
        sink: Sink = None,
        size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        response, stream = self.perform(request, proxy=proxy, size=size, timeout=timeout)
        with stream:
            return self.collect(sink, response, stream.read_chunk)

    def close(self) -> None:
        self._transport.close()

    @property
    def transport(self) -> AsyncTransport:
        return self._transport
