"""
Tests for AsyncIOTransport.

Most tests run the transport over MockNetworkBackend; the last group
talks to real sockets on the loopback interface.
"""

import asyncio
import threading

import pytest

from c_http_bridge.tls import TLSContext
from c_http_bridge.transport.aio import AsyncIOTransport
from c_http_bridge.transport.base import ProxyTarget, TransportParams
from c_http_bridge.transport.loop import EventLoopThread
from c_http_bridge.transport.mock import MockNetworkBackend

HELLO_RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: text/plain\r\n"
    b"Content-Length: 13\r\n"
    b"\r\n"
    b"Hello, World!"
)


class Recorder:
    """Collects the callbacks of one request."""

    def __init__(self, accept_header=True):
        self.accept_header = accept_header
        self.header_raw = None
        self.chunks = []
        self.body = "not called"
        self.raw = None
        self.done = threading.Event()

    def on_header(self, raw):
        self.header_raw = dict(raw)
        return self.accept_header

    def on_body(self, chunk, raw):
        self.chunks.append(chunk)
        return True

    def on_complete(self, body, raw):
        self.body = body
        self.raw = dict(raw)
        self.done.set()

    def issue(self, transport, params):
        guard = transport.issue(
            params,
            on_header=self.on_header,
            on_body=self.on_body,
            on_complete=self.on_complete,
        )
        assert self.done.wait(timeout=5), "request did not complete"
        return guard


class SlowBackend(MockNetworkBackend):
    """Backend whose connections never come up in time."""

    def __init__(self):
        super().__init__()
        self.connecting = threading.Event()

    async def connect_tcp(self, host, port, timeout=None):
        self.connecting.set()
        await asyncio.sleep(10)


@pytest.fixture
def backend():
    return MockNetworkBackend()


@pytest.fixture
def transport(backend):
    transport = AsyncIOTransport(backend=backend)
    yield transport
    transport.close()


def get(url, **kwargs):
    kwargs.setdefault("headers", {"Referer": None})
    return TransportParams(method="GET", url=url, **kwargs)


class TestSuccessfulExchange:
    """Test callbacks for a normal response."""

    def test_callbacks(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        recorder = Recorder()
        recorder.issue(transport, get("http://example.com/hello"))

        assert recorder.header_raw["Status"] == 200
        assert recorder.header_raw["Reason"] == "OK"
        assert recorder.header_raw["HTTPVersion"] == "1.1"
        assert recorder.header_raw["URL"] == "http://example.com/hello"
        assert recorder.header_raw["content-type"] == "text/plain"
        assert b"".join(recorder.chunks) == b"Hello, World!"
        assert recorder.body == b""
        assert recorder.raw["Status"] == 200

    def test_request_line_and_headers(self, backend, transport) -> None:
        backend.add_response("example.com", 8080, HELLO_RESPONSE)
        Recorder().issue(
            transport,
            get("http://example.com:8080/a?b=c", headers={"Accept": "*/*", "Referer": None}),
        )

        written = backend.get_connection("example.com", 8080).written_data
        assert written.startswith(b"GET /a?b=c HTTP/1.1\r\n")
        assert b"host: example.com:8080\r\n" in written
        assert b"Accept: */*\r\n" in written
        assert b"user-agent: c_http_bridge/" in written
        assert b"referer" not in written.lower()

    def test_none_suppresses_default_header(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        Recorder().issue(transport, get("http://example.com/", headers={"User-Agent": None}))

        written = backend.get_connection("example.com", 80).written_data
        assert b"user-agent" not in written.lower()

    def test_caller_header_replaces_default(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        Recorder().issue(transport, get("http://example.com/", headers={"User-Agent": "probe/1"}))

        written = backend.get_connection("example.com", 80).written_data
        assert b"User-Agent: probe/1\r\n" in written
        assert b"c_http_bridge/" not in written

    def test_request_body(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        params = TransportParams(method="POST", url="http://example.com/submit", body=b"abc")
        Recorder().issue(transport, params)

        written = backend.get_connection("example.com", 80).written_data
        assert b"content-length: 3\r\n" in written
        assert written.endswith(b"\r\n\r\nabc")

    def test_duplicate_headers_joined(self, backend, transport) -> None:
        backend.add_response(
            "example.com", 80,
            b"HTTP/1.1 200 OK\r\n"
            b"Set-Cookie: a=1; Path=/\r\n"
            b"Set-Cookie: b=2\r\n"
            b"Content-Length: 0\r\n"
            b"\r\n",
        )
        recorder = Recorder()
        recorder.issue(transport, get("http://example.com/"))

        assert recorder.header_raw["set-cookie"] == "a=1; Path=/,b=2"
        assert recorder.chunks == []

    def test_read_sizes(self, backend, transport) -> None:
        backend.add_response(
            "example.com", 80, b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n0123456789"
        )
        recorder = Recorder()
        recorder.issue(transport, get("http://example.com/", read_size=8, max_read_size=8))

        assert all(len(chunk) <= 8 for chunk in recorder.chunks)
        assert b"".join(recorder.chunks) == b"0123456789"
        assert set(backend.get_connection("example.com", 80).read_sizes) == {8}

    def test_awaitable_body_callback(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        recorder = Recorder()
        received = []

        async def on_body(chunk, raw):
            await asyncio.sleep(0)
            received.append(chunk)
            return True

        guard = transport.issue(
            get("http://example.com/"),
            on_header=recorder.on_header,
            on_body=on_body,
            on_complete=recorder.on_complete,
        )
        assert recorder.done.wait(timeout=5)
        assert b"".join(received) == b"Hello, World!"

    def test_connection_is_closed(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        Recorder().issue(transport, get("http://example.com/"))
        assert backend.get_connection("example.com", 80).is_closed


class TestFailures:
    """Test synthetic statuses for failed requests."""

    def test_connection_refused(self, transport) -> None:
        recorder = Recorder()
        recorder.issue(transport, get("http://unreachable.example.com/"))

        assert recorder.header_raw is None
        assert recorder.chunks == []
        assert recorder.body is None
        assert recorder.raw["Status"] == 595
        assert "Connection refused" in recorder.raw["Reason"]
        assert recorder.raw["URL"] == "http://unreachable.example.com/"

    def test_truncated_body(self, backend, transport) -> None:
        backend.add_response(
            "example.com", 80, b"HTTP/1.1 200 OK\r\nContent-Length: 100\r\n\r\npartial"
        )
        recorder = Recorder()
        recorder.issue(transport, get("http://example.com/"))

        assert recorder.header_raw["Status"] == 200
        assert b"".join(recorder.chunks) == b"partial"
        assert recorder.body is None
        assert recorder.raw["Status"] == 597

    def test_malformed_response(self, backend, transport) -> None:
        backend.add_response("example.com", 80, b"garbage\r\n\r\n")
        recorder = Recorder()
        recorder.issue(transport, get("http://example.com/"))

        assert recorder.header_raw is None
        assert recorder.raw["Status"] == 596

    def test_header_callback_aborts(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        recorder = Recorder(accept_header=False)
        recorder.issue(transport, get("http://example.com/"))

        assert recorder.chunks == []
        assert recorder.raw["Status"] == 598

    def test_header_callback_raises(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        recorder = Recorder()

        def on_header(raw):
            raise ValueError("bad callback")

        guard = transport.issue(
            get("http://example.com/"),
            on_header=on_header,
            on_body=recorder.on_body,
            on_complete=recorder.on_complete,
        )
        assert recorder.done.wait(timeout=5)
        assert recorder.raw["Status"] == 599

    def test_timeout(self) -> None:
        transport = AsyncIOTransport(backend=SlowBackend())
        try:
            recorder = Recorder()
            recorder.issue(transport, get("http://example.com/", timeout=0.05))
        finally:
            transport.close()

        assert recorder.body is None
        assert recorder.raw["Status"] == 595
        assert "timed out" in recorder.raw["Reason"]

    def test_cancel(self) -> None:
        backend = SlowBackend()
        transport = AsyncIOTransport(backend=backend)
        recorder = Recorder()
        try:
            guard = transport.issue(
                get("http://example.com/"),
                on_header=recorder.on_header,
                on_body=recorder.on_body,
                on_complete=recorder.on_complete,
            )
            assert backend.connecting.wait(timeout=5)
            assert guard.cancel()
            assert recorder.done.wait(timeout=5)
        finally:
            transport.close()

        assert recorder.body is None
        assert recorder.raw["Status"] == 598

    def test_https_without_tls_context(self, backend, transport) -> None:
        backend.add_response("example.com", 443, HELLO_RESPONSE)
        recorder = Recorder()
        recorder.issue(transport, get("https://example.com/"))

        assert recorder.raw["Status"] == 596
        assert backend.get_connection("example.com", 443).is_closed


class TestProxies:
    """Test requests through an http proxy."""

    def test_forward_proxy_uses_absolute_target(self, backend, transport) -> None:
        backend.add_response("proxy.local", 3128, HELLO_RESPONSE)
        recorder = Recorder()
        recorder.issue(
            transport,
            get("http://example.com/page", proxy=ProxyTarget("proxy.local", 3128, "http")),
        )

        written = backend.get_connection("proxy.local", 3128).written_data
        assert written.startswith(b"GET http://example.com/page HTTP/1.1\r\n")
        assert b"host: example.com\r\n" in written
        assert recorder.raw["Status"] == 200

    def test_https_tunnel(self, backend, transport) -> None:
        backend.add_response(
            "proxy.local", 3128, b"HTTP/1.1 200 Connection established\r\n\r\n"
        )
        recorder = Recorder()
        recorder.issue(
            transport,
            get(
                "https://example.com/",
                proxy=ProxyTarget("proxy.local", 3128, "http"),
                tls=TLSContext(verify=False),
            ),
        )

        stream = backend.get_connection("proxy.local", 3128)
        assert stream.written_data.startswith(
            b"CONNECT example.com:443 HTTP/1.1\r\nHost: example.com:443\r\n\r\n"
        )
        assert stream.tls_hostname == "example.com"

    def test_tunnel_refused(self, backend, transport) -> None:
        backend.add_response("proxy.local", 3128, b"HTTP/1.1 403 Forbidden\r\n\r\n")
        recorder = Recorder()
        recorder.issue(
            transport,
            get(
                "https://example.com/",
                proxy=ProxyTarget("proxy.local", 3128, "http"),
                tls=TLSContext(verify=False),
            ),
        )

        assert recorder.raw["Status"] == 595
        assert "403" in recorder.raw["Reason"]
        assert backend.get_connection("proxy.local", 3128).is_closed


class TestEventLoop:
    """Test loop ownership."""

    def test_in_loop_thread(self, backend, transport) -> None:
        backend.add_response("example.com", 80, HELLO_RESPONSE)
        seen = []

        def on_header(raw):
            seen.append(transport.in_loop_thread())
            return True

        recorder = Recorder()
        guard = transport.issue(
            get("http://example.com/"),
            on_header=on_header,
            on_body=recorder.on_body,
            on_complete=recorder.on_complete,
        )
        assert recorder.done.wait(timeout=5)
        assert seen == [True]
        assert not transport.in_loop_thread()

    def test_shared_loop_is_not_stopped(self, backend) -> None:
        loop = EventLoopThread(name="shared-loop")
        loop.start()
        try:
            AsyncIOTransport(backend=backend, loop=loop).close()
            assert loop.is_running
        finally:
            loop.stop()
        assert not loop.is_running


class TestLoopback:
    """Test the transport against real sockets."""

    def test_closed_port(self, closed_port) -> None:
        transport = AsyncIOTransport()
        try:
            recorder = Recorder()
            recorder.issue(transport, get(f"http://127.0.0.1:{closed_port}/"))
        finally:
            transport.close()

        assert recorder.header_raw is None
        assert recorder.raw["Status"] == 595

    def test_chunked_response(self, http_server) -> None:
        transport = AsyncIOTransport()
        try:
            recorder = Recorder()
            recorder.issue(transport, get(f"{http_server}/chunked"))
        finally:
            transport.close()

        assert recorder.raw["Status"] == 200
        assert b"".join(recorder.chunks) == b"firstsecondthird"
        assert recorder.body == b""
