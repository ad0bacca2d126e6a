"""
Transports for c_http_bridge.

This package provides the callback transport contract and the
asyncio/h11 implementation of it, along with test doubles.
"""

from .base import (
    AsyncTransport,
    ProxyTarget,
    RawHeaders,
    RequestGuard,
    TransportParams,
    STATUS_CANCELLED,
    STATUS_INTERNAL_ERROR,
)
from .loop import EventLoopThread
from .network import NetworkStream, NetworkBackend, AsyncIOStream, AsyncIONetworkBackend
from .http11 import HTTP11Connection, ConnectionState, ResponseHead
from .aio import AsyncIOTransport
from .mock import MockExchange, MockTransport, MockNetworkBackend, MockNetworkStream

__all__ = [
    "AsyncTransport",
    "ProxyTarget",
    "RawHeaders",
    "RequestGuard",
    "TransportParams",
    "STATUS_CANCELLED",
    "STATUS_INTERNAL_ERROR",
    "EventLoopThread",
    "NetworkStream",
    "NetworkBackend",
    "AsyncIOStream",
    "AsyncIONetworkBackend",
    "HTTP11Connection",
    "ConnectionState",
    "ResponseHead",
    "AsyncIOTransport",
    "MockExchange",
    "MockTransport",
    "MockNetworkBackend",
    "MockNetworkStream",
]
