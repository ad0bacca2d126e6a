"""
TLS trust configuration for c_http_bridge.

Derives the per-request TLSContext from generic SSL options, resolves
a default CA bundle when verification is requested without one, and
builds the ssl.SSLContext handed to the network layer.
"""

import logging
import os
import ssl
from dataclasses import dataclass
from typing import Callable, Optional

from .exceptions import ConfigurationError, NoCABundleResolverError
from .http_primitives import SSLOptions

logger = logging.getLogger(__name__)

CABundleResolver = Callable[[], str]

VERIFY_PEERNAME_HTTP = "http"


@dataclass(frozen=True)
class TLSContext:
    """Trust settings for one https request."""

    verify: bool
    verify_peername: Optional[str] = None
    ca_file: Optional[str] = None
    ca_path: Optional[str] = None


def system_ca_bundle() -> str:
    """
    Resolve the platform's default CA bundle.

    Returns:
        Path to a CA file, or to a CA directory when no file is configured

    Raises:
        FileNotFoundError: If OpenSSL reports no usable location
    """
    paths = ssl.get_default_verify_paths()
    if paths.cafile and os.path.isfile(paths.cafile):
        return paths.cafile
    if paths.capath and os.path.isdir(paths.capath):
        return paths.capath
    raise FileNotFoundError("No default CA bundle found on this system")


def default_ca_bundle_path(resolver: Optional[CABundleResolver]) -> str:
    """
    Look up the default CA bundle through ``resolver``.

    Raises:
        NoCABundleResolverError: If no resolver is installed
        ConfigurationError: If the resolver fails or returns nothing
    """
    if resolver is None:
        raise NoCABundleResolverError()

    try:
        path = resolver()
    except Exception as e:
        raise ConfigurationError(f"CA bundle resolver failed: {e}", cause=e) from e

    if not path:
        raise ConfigurationError("CA bundle resolver returned no path")
    return path


def derive_tls_context(
    options: Optional[SSLOptions],
    resolver: Optional[CABundleResolver],
) -> TLSContext:
    """
    Compute the TLSContext for a request.

    When verification is on and neither ``ca_file`` nor ``ca_path``
    is set, the resolver must supply a bundle; there is no fallback
    to accepting any certificate.
    """
    options = options or SSLOptions()

    if not options.verify:
        return TLSContext(verify=False)

    ca_file, ca_path = options.ca_file, options.ca_path
    if not ca_file and not ca_path:
        bundle = default_ca_bundle_path(resolver)
        if os.path.isdir(bundle):
            ca_path = bundle
        else:
            ca_file = bundle
        logger.debug(f"Using default CA bundle {bundle}")

    return TLSContext(
        verify=True,
        verify_peername=VERIFY_PEERNAME_HTTP if options.verify_hostname else None,
        ca_file=ca_file,
        ca_path=ca_path,
    )


def create_ssl_context(
    tls: TLSContext,
    alpn_protocols: Optional[list[str]] = None,
) -> ssl.SSLContext:
    """
    Create an SSL context for a TLSContext.

    Args:
        tls: Trust settings derived for the request
        alpn_protocols: Optional list of ALPN protocols to negotiate

    Returns:
        Configured SSL context

    Raises:
        ssl.SSLError: If SSL context creation fails
        OSError: If the CA file or directory cannot be read
    """
    if tls.verify:
        context = ssl.create_default_context(cafile=tls.ca_file, capath=tls.ca_path)
        context.check_hostname = tls.verify_peername == VERIFY_PEERNAME_HTTP
    else:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    if alpn_protocols:
        context.set_alpn_protocols(alpn_protocols)

    context.options |= ssl.OP_NO_COMPRESSION
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    return context
