"""
c_http_bridge - synchronous HTTP on top of callback-driven transports

Bridges a blocking, pull-based client API to an HTTP transport that
reports headers and body chunks through callbacks on an event loop,
without blocking that loop.
"""

__version__ = "0.1.0"
__author__ = "Developer"
__email__ = "dev@example.com"

# Import main components for easy access
from .http_primitives import Headers, Request, Response, SSLOptions, URLComponents
from .exceptions import (
    HTTPBridgeError,
    ConfigurationError,
    NoCABundleResolverError,
    UnsupportedSchemeError,
    TooManyRedirectsError,
    TransportError,
    ConnectionError,
    TimeoutError,
    ProtocolError,
    StreamError,
)
from .channel import ChunkChannel, END_OF_STREAM
from .streams import ResponseStream
from .protocol import ProtocolHandler
from .bridge import BridgedHTTPHandler
from .client import HTTPClient, create_client
from .tls import TLSContext, system_ca_bundle

__all__ = [
    "Headers",
    "Request",
    "Response",
    "SSLOptions",
    "URLComponents",
    "HTTPBridgeError",
    "ConfigurationError",
    "NoCABundleResolverError",
    "UnsupportedSchemeError",
    "TooManyRedirectsError",
    "TransportError",
    "ConnectionError",
    "TimeoutError",
    "ProtocolError",
    "StreamError",
    "ChunkChannel",
    "END_OF_STREAM",
    "ResponseStream",
    "ProtocolHandler",
    "BridgedHTTPHandler",
    "HTTPClient",
    "create_client",
    "TLSContext",
    "system_ca_bundle",
]
