"""
HTTP primitives for c_http_bridge.

This module defines the request and response types shared by the
client layer, the bridge and the transports. Requests are immutable;
a response is mutable because the bridge fills it in from transport
callbacks while the caller is waiting for it.
"""

from typing import (
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)
from dataclasses import dataclass, field
from urllib.parse import urlsplit, urlunsplit


StatusCode = int
HeaderValue = Union[str, List[str]]

DEFAULT_PORTS = {"http": 80, "https": 443}


class URLComponents(NamedTuple):
    """Immutable representation of URL components."""
    scheme: str
    host: str
    port: int
    path: str
    query: str = ""

    @classmethod
    def from_url(cls, url: str) -> "URLComponents":
        """Create URLComponents from a URL string."""
        parsed = urlsplit(url)
        scheme = parsed.scheme.lower() if parsed.scheme else "http"
        host = parsed.hostname or ""
        port = parsed.port or DEFAULT_PORTS.get(scheme, 80)
        path = parsed.path or "/"

        return cls(scheme=scheme, host=host, port=port, path=path, query=parsed.query)

    @property
    def netloc(self) -> str:
        """Host and port, with the port omitted when it is the scheme default."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if DEFAULT_PORTS.get(self.scheme) == self.port:
            return host
        return f"{host}:{self.port}"

    @property
    def target(self) -> str:
        """Origin-form request target (path and query)."""
        return f"{self.path}?{self.query}" if self.query else self.path

    def __str__(self) -> str:
        return urlunsplit((self.scheme, self.netloc, self.path, self.query, ""))


class Headers:
    """
    Case-insensitive, multi-valued header mapping.

    Names keep the case they were first given in; lookups ignore case.
    ``get`` joins repeated values with ", " while ``get_all`` returns
    them individually, which matters for ``set-cookie``.
    """

    def __init__(
        self,
        headers: Optional[Union[Mapping[str, HeaderValue], Iterable[Tuple[str, str]]]] = None,
    ) -> None:
        self._fields: Dict[str, Tuple[str, List[str]]] = {}
        if headers is None:
            return
        if isinstance(headers, Mapping):
            self.update(headers)
        else:
            for name, value in headers:
                self.add(name, value)

    def set(self, name: str, value: HeaderValue) -> None:
        """Replace every value of ``name``."""
        values = list(value) if isinstance(value, (list, tuple)) else [value]
        self._fields[name.lower()] = (name, [str(v) for v in values])

    def add(self, name: str, value: str) -> None:
        """Append a value to ``name``, keeping existing ones."""
        key = name.lower()
        if key in self._fields:
            self._fields[key][1].append(str(value))
        else:
            self._fields[key] = (name, [str(value)])

    def update(self, headers: Mapping[str, HeaderValue]) -> None:
        """Replace per field; fields not named in ``headers`` are untouched."""
        for name, value in headers.items():
            self.set(name, value)

    def remove(self, name: str) -> None:
        self._fields.pop(name.lower(), None)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._fields.get(name.lower())
        if entry is None:
            return default
        return ", ".join(entry[1])

    def get_all(self, name: str) -> List[str]:
        entry = self._fields.get(name.lower())
        return list(entry[1]) if entry else []

    def items(self) -> Iterator[Tuple[str, str]]:
        """Yield (name, value) pairs, one per value."""
        for name, values in self._fields.values():
            for value in values:
                yield name, value

    def copy(self) -> "Headers":
        headers = Headers()
        for key, (name, values) in self._fields.items():
            headers._fields[key] = (name, list(values))
        return headers

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __setitem__(self, name: str, value: HeaderValue) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        if name.lower() not in self._fields:
            raise KeyError(name)
        self.remove(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._fields

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return {k: v for k, (_, v) in self._fields.items()} == {
            k: v for k, (_, v) in other._fields.items()
        }

    def __repr__(self) -> str:
        return f"Headers({list(self.items())!r})"


@dataclass(frozen=True)
class SSLOptions:
    """
    Per-request TLS options.

    ``verify`` turns certificate verification on, ``verify_hostname``
    additionally checks the peer name against the URL host.
    """

    verify: bool = True
    verify_hostname: bool = True
    ca_file: Optional[str] = None
    ca_path: Optional[str] = None


@dataclass(frozen=True)
class Request:
    """
    Immutable HTTP request representation.

    Once created, the request cannot be modified - any changes
    must create a new Request instance.
    """

    method: str
    url: URLComponents
    headers: Headers = field(default_factory=Headers)
    content: Optional[bytes] = None
    ssl_options: Optional[SSLOptions] = None

    def __post_init__(self) -> None:
        """Validate request data after initialization."""
        if not isinstance(self.method, str) or not self.method:
            raise ValueError("method must be a non-empty string")

        if not isinstance(self.url, URLComponents):
            raise ValueError("url must be URLComponents")

        if not self.url.host:
            raise ValueError("url must have a host")

        if not isinstance(self.headers, Headers):
            raise ValueError("headers must be Headers")

        if self.content is not None and not isinstance(self.content, bytes):
            raise ValueError("content must be bytes")

    @classmethod
    def create(
        cls,
        method: str,
        url: Union[str, URLComponents],
        headers: Optional[Union[Headers, Mapping[str, HeaderValue], Iterable[Tuple[str, str]]]] = None,
        content: Optional[Union[bytes, str]] = None,
        ssl_options: Optional[SSLOptions] = None,
    ) -> "Request":
        """
        Create a Request with proper type conversion.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: URL string or URLComponents
            headers: Optional Headers, mapping or list of (name, value) tuples
            content: Optional request body; strings are UTF-8 encoded
            ssl_options: Optional TLS options for https URLs

        Returns:
            New Request instance
        """
        if isinstance(url, str):
            url = URLComponents.from_url(url)

        if not isinstance(headers, Headers):
            headers = Headers(headers)

        if isinstance(content, str):
            content = content.encode("utf-8")

        return cls(
            method=method.upper(),
            url=url,
            headers=headers,
            content=content,
            ssl_options=ssl_options,
        )

    def with_method(self, method: str) -> "Request":
        """Create a new request with a different method."""
        return Request(method.upper(), self.url, self.headers, self.content, self.ssl_options)

    def with_url(self, url: Union[str, URLComponents]) -> "Request":
        """Create a new request with a different URL."""
        if isinstance(url, str):
            url = URLComponents.from_url(url)
        return Request(self.method, url, self.headers, self.content, self.ssl_options)

    def with_headers(self, headers: Headers) -> "Request":
        """Create a new request with different headers."""
        return Request(self.method, self.url, headers, self.content, self.ssl_options)

    def with_content(self, content: Optional[bytes]) -> "Request":
        """Create a new request with a different body."""
        return Request(self.method, self.url, self.headers, content, self.ssl_options)

    @property
    def scheme(self) -> str:
        return self.url.scheme

    @property
    def host(self) -> str:
        return self.url.host

    @property
    def port(self) -> int:
        return self.url.port


@dataclass
class Response:
    """
    Mutable HTTP response representation.

    A response starts in the "599 Internal Server Error" state and is
    filled in as the transport reports headers and completion.
    """

    code: StatusCode = 599
    message: str = "Internal Server Error"
    protocol: Optional[str] = None
    headers: Headers = field(default_factory=Headers)
    request: Optional[Request] = None
    content: bytes = b""
    previous: Optional["Response"] = None

    @property
    def status_line(self) -> str:
        return f"{self.code} {self.message}".rstrip()

    @property
    def is_success(self) -> bool:
        return 200 <= self.code < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.code < 400

    @property
    def is_error(self) -> bool:
        return self.code >= 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def redirects(self) -> List["Response"]:
        """Earlier responses in the redirect chain, oldest first."""
        chain = []
        previous = self.previous
        while previous is not None:
            chain.append(previous)
            previous = previous.previous
        return list(reversed(chain))

    def __repr__(self) -> str:
        return f"<Response [{self.status_line}]>"
