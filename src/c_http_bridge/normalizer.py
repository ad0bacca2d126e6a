"""
Normalization of transport-reported headers into a Response.
"""

import re
from typing import Any, Dict, List, Mapping

from .http_primitives import HeaderValue, Response

# Capitalized names are pseudo-headers added by the transport.
_PSEUDO_HEADER = re.compile(r"^(?!X-)[A-Z]")

# A comma starts a new cookie only when a cookie name and "=", ";" or
# "," (or the end) follow; commas inside expires dates do not qualify.
_COOKIE_SEPARATOR = re.compile(r",(?=\s*\w+\s*(?:[=,;]|\Z))")

_LINE_FOLD = re.compile(r"\r?\n[ \t]+")


def split_set_cookie(value: str) -> List[str]:
    """Undo the transport's joining of several Set-Cookie headers."""
    return [cookie.lstrip() for cookie in _COOKIE_SEPARATOR.split(value)]


def unfold(value: str) -> str:
    """Replace obsolete line folding with a single space."""
    return _LINE_FOLD.sub(" ", value)


def normalize_headers(raw_headers: Mapping[str, Any], prefix: str) -> Dict[str, HeaderValue]:
    """
    Turn a transport's raw header mapping into response header fields.

    The pseudo-fields HTTPVersion, Status and Reason are dropped; they
    are status line data, see set_response_headers.
    """
    headers: Dict[str, HeaderValue] = {}
    for name, value in raw_headers.items():
        if name in ("HTTPVersion", "Status", "Reason"):
            continue
        if _PSEUDO_HEADER.match(name):
            name = f"X-{prefix}-{name}"
        headers[name] = unfold(str(value))

    cookie = headers.get("set-cookie")
    if isinstance(cookie, str):
        headers["set-cookie"] = split_set_cookie(cookie)

    return headers


def set_response_headers(response: Response, raw_headers: Mapping[str, Any], prefix: str) -> None:
    """
    Apply raw transport headers to ``response``.

    Status line fields are overwritten; header fields are replaced one
    by one, so fields missing from ``raw_headers`` survive. Applying the
    same input twice leaves the response unchanged.
    """
    version = raw_headers.get("HTTPVersion")
    if version:
        response.protocol = f"HTTP/{version}"

    status = raw_headers.get("Status")
    if status is not None:
        response.code = int(status)

    reason = raw_headers.get("Reason")
    if reason is not None:
        response.message = str(reason)

    response.headers.update(normalize_headers(raw_headers, prefix))
