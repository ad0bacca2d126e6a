"""
Synchronous HTTP client for c_http_bridge.

HTTPClient dispatches requests by URL scheme to registered protocol
handlers and owns the policies a handler must not apply itself:
default headers, proxy selection and redirect following.
"""

import logging
import urllib.request
from typing import Dict, Iterable, Mapping, Optional, Union
from urllib.parse import urljoin

from . import __version__
from .bridge import BridgedHTTPHandler
from .exceptions import TooManyRedirectsError, UnsupportedSchemeError
from .http_primitives import Headers, HeaderValue, Request, Response, SSLOptions
from .protocol import ProtocolHandler, Sink
from .transport.aio import AsyncIOTransport

logger = logging.getLogger(__name__)

REDIRECT_CODES = (301, 302, 303, 307, 308)
REDIRECTABLE_METHODS = ("GET", "HEAD")


class HTTPClient:
    """
    Scheme-dispatching synchronous HTTP client.

    Handlers are registered explicitly with ``register``; the client
    holds its own scheme table, nothing is shared between clients.
    """

    DEFAULT_TIMEOUT = 180.0
    DEFAULT_MAX_REDIRECTS = 7
    DEFAULT_USER_AGENT = f"c_http_bridge/{__version__}"

    def __init__(
        self,
        handlers: Optional[Mapping[str, ProtocolHandler]] = None,
        timeout: Optional[float] = None,
        max_redirects: Optional[int] = None,
        user_agent: Optional[str] = None,
        ssl_options: Optional[SSLOptions] = None,
        proxies: Optional[Mapping[str, str]] = None,
        no_proxy: Iterable[str] = (),
        read_size: Optional[int] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            handlers: Initial scheme -> handler table
            timeout: Timeout for each request in seconds
            max_redirects: Maximum number of redirects to follow
            user_agent: User-Agent sent when a request does not set one
            ssl_options: TLS options attached to https requests
            proxies: Scheme -> proxy URL table
            no_proxy: Host names (or domain suffixes) never proxied
            read_size: Read-size hint passed to handlers
        """
        self._handlers: Dict[str, ProtocolHandler] = {}
        for scheme, handler in (handlers or {}).items():
            self.register([scheme], handler)

        self.timeout = self.DEFAULT_TIMEOUT if timeout is None else timeout
        self.max_redirects = self.DEFAULT_MAX_REDIRECTS if max_redirects is None else max_redirects
        self.user_agent = user_agent or self.DEFAULT_USER_AGENT
        self.ssl_options = ssl_options or SSLOptions()
        self.proxies = dict(proxies or {})
        self.no_proxy = [host.lower().lstrip(".") for host in no_proxy]
        self.read_size = read_size

    def register(self, schemes: Iterable[str], handler: ProtocolHandler) -> None:
        """Make ``handler`` serve every scheme in ``schemes``."""
        for scheme in schemes:
            self._handlers[scheme.lower()] = handler
            logger.debug(f"Registered {type(handler).__name__} for {scheme}")

    def handler_for(self, scheme: str) -> ProtocolHandler:
        handler = self._handlers.get(scheme.lower())
        if handler is None:
            raise UnsupportedSchemeError(scheme)
        return handler

    @staticmethod
    def proxies_from_env() -> Dict[str, str]:
        """Read http/https proxies from the standard *_proxy variables."""
        return {
            scheme: url
            for scheme, url in urllib.request.getproxies().items()
            if scheme in ("http", "https")
        }

    def proxy_for(self, request: Request) -> Optional[str]:
        host = request.host.lower()
        for suffix in self.no_proxy:
            if host == suffix or host.endswith("." + suffix):
                return None
        return self.proxies.get(request.scheme)

    def build_request(
        self,
        method: str,
        url: str,
        headers: Optional[Union[Headers, Mapping[str, HeaderValue]]] = None,
        content: Optional[Union[bytes, str]] = None,
    ) -> Request:
        """Create a Request carrying the client's defaults."""
        request_headers = headers.copy() if isinstance(headers, Headers) else Headers(headers)
        if "user-agent" not in request_headers:
            request_headers.set("User-Agent", self.user_agent)

        request = Request.create(method, url, headers=request_headers, content=content)
        if request.scheme == "https":
            request = Request(
                request.method, request.url, request.headers, request.content, self.ssl_options
            )
        return request

    def send(self, request: Request, sink: Sink = None) -> Response:
        """
        Send ``request``, following redirects.

        Args:
            request: The request to send
            sink: Body destination for the final, successful response

        Returns:
            The final response; earlier hops are linked via ``previous``

        Raises:
            UnsupportedSchemeError: If no handler serves a URL's scheme
            TooManyRedirectsError: If more than ``max_redirects`` are needed
            ConfigurationError: If a request cannot be configured
        """
        response = self._send_once(request, sink)
        redirects = 0

        while True:
            next_request = self._redirect_request(request, response)
            if next_request is None:
                return response
            if redirects >= self.max_redirects:
                raise TooManyRedirectsError(self.max_redirects)
            redirects += 1

            logger.debug(f"Following {response.code} redirect to {next_request.url}")
            next_response = self._send_once(next_request, sink)
            next_response.previous = response
            request, response = next_request, next_response

    def _send_once(self, request: Request, sink: Sink) -> Response:
        handler = self.handler_for(request.scheme)
        return handler.request(
            request,
            proxy=self.proxy_for(request),
            sink=sink,
            size=self.read_size,
            timeout=self.timeout,
        )

    def _redirect_request(self, request: Request, response: Response) -> Optional[Request]:
        location = response.headers.get("location")
        if response.code not in REDIRECT_CODES or not location:
            return None

        method = request.method
        if response.code == 303 and method != "HEAD":
            method = "GET"
        elif method not in REDIRECTABLE_METHODS:
            return None

        redirected = request.with_url(urljoin(str(request.url), location.strip()))
        headers = request.headers.copy()
        if method != request.method:
            for name in ("content-type", "content-length"):
                headers.remove(name)
            redirected = redirected.with_content(None)
        if redirected.host != request.host:
            headers.remove("authorization")
        if redirected.scheme == "https" and redirected.ssl_options is None:
            redirected = Request(
                redirected.method, redirected.url, redirected.headers,
                redirected.content, self.ssl_options,
            )
        return redirected.with_method(method).with_headers(headers)

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Union[Headers, Mapping[str, HeaderValue]]] = None,
        content: Optional[Union[bytes, str]] = None,
        sink: Sink = None,
    ) -> Response:
        return self.send(self.build_request(method, url, headers, content), sink)

    def get(self, url: str, headers=None, sink: Sink = None) -> Response:
        return self.request("GET", url, headers=headers, sink=sink)

    def head(self, url: str, headers=None) -> Response:
        return self.request("HEAD", url, headers=headers)

    def post(self, url: str, content=None, headers=None, sink: Sink = None) -> Response:
        return self.request("POST", url, headers=headers, content=content, sink=sink)

    def put(self, url: str, content=None, headers=None, sink: Sink = None) -> Response:
        return self.request("PUT", url, headers=headers, content=content, sink=sink)

    def delete(self, url: str, headers=None, sink: Sink = None) -> Response:
        return self.request("DELETE", url, headers=headers, sink=sink)

    def close(self) -> None:
        """Close every registered handler once."""
        closed = set()
        for handler in self._handlers.values():
            if id(handler) not in closed:
                closed.add(id(handler))
                handler.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def create_client(
    transport: Optional[AsyncIOTransport] = None,
    **kwargs,
) -> HTTPClient:
    """
    Create an HTTPClient with http and https served by a BridgedHTTPHandler.

    Args:
        transport: Transport to bridge to; a new AsyncIOTransport by default
        **kwargs: Passed to HTTPClient

    Example:
        >>> with create_client(timeout=30) as client:
        ...     response = client.get("http://example.com/")
    """
    handler = BridgedHTTPHandler(transport or AsyncIOTransport())
    client = HTTPClient(**kwargs)
    client.register(("http", "https"), handler)
    return client
