"""
Custom exceptions for c_http_bridge.

This module defines the exception hierarchy used throughout
the library. Only configuration problems ever reach the caller
as exceptions; transport failures are turned into synthetic
responses by the transport itself.
"""

from typing import Optional


class HTTPBridgeError(Exception):
    """Base exception for all c_http_bridge errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(HTTPBridgeError):
    """Raised before any network I/O when a request cannot be configured."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Configuration error: {message}", cause)


class NoCABundleResolverError(ConfigurationError):
    """Raised when TLS verification needs a CA bundle and no resolver is installed."""

    def __init__(self) -> None:
        super().__init__(
            "TLS verification requested without ca_file/ca_path "
            "and no CA bundle resolver is installed"
        )


class UnsupportedSchemeError(HTTPBridgeError):
    """Raised when no protocol handler is registered for a URL scheme."""

    def __init__(self, scheme: str) -> None:
        super().__init__(f"Protocol scheme '{scheme}' is not supported")
        self.scheme = scheme


class TooManyRedirectsError(HTTPBridgeError):
    """Raised when a redirect chain exceeds the client's limit."""

    def __init__(self, max_redirects: int) -> None:
        super().__init__(f"Exceeded {max_redirects} redirects")
        self.max_redirects = max_redirects


class TransportError(HTTPBridgeError):
    """
    Failure inside the transport.

    These never escape to the caller. The transport reports them
    as a response carrying ``status`` and the error message as reason.
    """

    status = 599

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message, cause)
        self.reason = message


class ConnectionError(TransportError):
    """Raised when a connection (or proxy tunnel) cannot be established."""

    status = 595

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Connection error: {message}", cause)


class TimeoutError(TransportError):
    """Raised when a request exceeds its timeout."""

    status = 595

    def __init__(self, message: str, timeout: Optional[float] = None) -> None:
        if timeout is not None:
            message = f"{message} (timeout: {timeout}s)"
        super().__init__(f"Timeout error: {message}")


class ProtocolError(TransportError):
    """Raised on TLS, request sending or response header failures."""

    status = 596

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Protocol error: {message}", cause)


class StreamError(TransportError):
    """Raised when a body stream fails or a channel is misused."""

    status = 597

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Stream error: {message}", cause)
