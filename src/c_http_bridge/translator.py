"""
Translation of client requests into transport parameters.
"""

import logging
from typing import Dict, Optional
from urllib.parse import urlsplit

from .exceptions import ConfigurationError
from .http_primitives import DEFAULT_PORTS, Request
from .tls import CABundleResolver, derive_tls_context
from .transport.base import ProxyTarget, TransportParams

logger = logging.getLogger(__name__)

SUPPORTED_PROXY_SCHEMES = ("http",)


def parse_proxy(proxy: str) -> ProxyTarget:
    """
    Decompose a proxy URL into (host, port, scheme).

    Raises:
        ConfigurationError: If the URL has no host, an unsupported
            scheme or an invalid port
    """
    try:
        parsed = urlsplit(proxy)
        port = parsed.port
    except ValueError as e:
        raise ConfigurationError(f"Malformed proxy URL {proxy!r}: {e}", cause=e) from e

    scheme = parsed.scheme.lower()
    if scheme not in SUPPORTED_PROXY_SCHEMES:
        raise ConfigurationError(f"Unsupported proxy scheme in {proxy!r}")
    if not parsed.hostname:
        raise ConfigurationError(f"Malformed proxy URL {proxy!r}: no host")

    return ProxyTarget(
        host=parsed.hostname,
        port=port or DEFAULT_PORTS[scheme],
        scheme=scheme,
    )


def flatten_headers(request: Request) -> Dict[str, Optional[str]]:
    """
    Flatten request headers to one value per name.

    The last value of a repeated header wins. A Referer the caller did
    not set is mapped to None so the transport neither sends one nor
    injects its own default.
    """
    headers: Dict[str, Optional[str]] = {}
    for name, value in request.headers.items():
        headers[name] = value

    if "referer" not in request.headers:
        headers["Referer"] = None

    return headers


def build_transport_params(
    request: Request,
    proxy: Optional[str] = None,
    size: Optional[int] = None,
    timeout: Optional[float] = None,
    ca_bundle_resolver: Optional[CABundleResolver] = None,
) -> TransportParams:
    """
    Build transport parameters for ``request``.

    Args:
        request: The request to send
        proxy: Optional proxy URL
        size: Optional read-size hint, used for both read and max read size
        timeout: Optional timeout for the whole request, passed through
        ca_bundle_resolver: Default CA bundle lookup for https verification

    Returns:
        TransportParams with redirects disabled

    Raises:
        ConfigurationError: Before any I/O, if TLS trust or the proxy
            cannot be configured
    """
    tls = None
    if request.scheme == "https":
        tls = derive_tls_context(request.ssl_options, ca_bundle_resolver)

    return TransportParams(
        method=request.method,
        url=str(request.url),
        headers=flatten_headers(request),
        body=request.content,
        proxy=parse_proxy(proxy) if proxy else None,
        tls=tls,
        timeout=timeout,
        read_size=size,
        max_read_size=size,
        recurse=0,
    )
