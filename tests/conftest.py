"""
Pytest configuration for c_http_bridge tests.

This file contains shared fixtures and configuration
for all tests in the project.
"""

import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List

import pytest

from c_http_bridge.bridge import BridgedHTTPHandler
from c_http_bridge.http_primitives import Request
from c_http_bridge.transport.mock import MockTransport

FAKE_CA_BUNDLE = "/etc/ssl/certs/test-bundle.pem"


@pytest.fixture
def mock_transport():
    """Create a MockTransport and stop its loop afterwards."""
    transport = MockTransport()
    yield transport
    transport.close()


@pytest.fixture
def handler(mock_transport):
    """Create a BridgedHTTPHandler over the mock transport."""
    return BridgedHTTPHandler(mock_transport, ca_bundle_resolver=lambda: FAKE_CA_BUNDLE)


@pytest.fixture
def sample_request():
    """Sample GET request for testing."""
    return Request.create(
        "GET",
        "http://api.example.com:8080/v1/data?page=2",
        headers={"Accept": "application/json", "X-Trace": "abc123"},
    )


@pytest.fixture
def sample_raw_headers():
    """Raw headers as a transport reports them."""
    return {
        "HTTPVersion": "1.1",
        "Status": "200",
        "Reason": "OK",
        "URL": "http://api.example.com:8080/v1/data?page=2",
        "content-type": "application/json",
        "content-length": "13",
        "server": "nginx/1.18.0",
    }


@pytest.fixture
def sink_calls():
    """A content sink recording every chunk it receives."""
    calls: List[bytes] = []

    def sink(chunk, response):
        calls.append(chunk)

    sink.calls = calls
    return sink


@pytest.fixture
def closed_port():
    """A localhost port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


class _TestHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _send(self, status, body=b"", headers=()):
        self.send_response(status)
        for name, value in headers:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def do_GET(self):
        if self.path == "/hello":
            self._send(200, b"Hello, World!", [("Content-Type", "text/plain")])
        elif self.path == "/chunked":
            self.send_response(200)
            self.send_header("Transfer-Encoding", "chunked")
            self.send_header("Connection", "close")
            self.end_headers()
            for part in (b"first", b"second", b"third"):
                self.wfile.write(b"%x\r\n%s\r\n" % (len(part), part))
                self.wfile.flush()
            self.wfile.write(b"0\r\n\r\n")
        elif self.path == "/cookies":
            self._send(200, b"", [
                ("Set-Cookie", "a=1; expires=Wed, 09 Jun 2021 10:18:14 GMT"),
                ("Set-Cookie", "b=2; Path=/"),
            ])
        elif self.path == "/redirect":
            self._send(302, b"", [("Location", "/hello")])
        elif self.path == "/headers":
            body = "\n".join(f"{k.lower()}: {v}" for k, v in self.headers.items())
            self._send(200, body.encode("latin-1"))
        else:
            self._send(404)

    do_HEAD = do_GET

    def do_POST(self):
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length)
        if self.path == "/echo":
            self._send(200, body, [("Content-Type", "application/octet-stream")])
        elif self.path == "/see-other":
            self._send(303, b"", [("Location", "/hello")])
        else:
            self._send(404)


@pytest.fixture
def http_server():
    """A local HTTP/1.1 server on 127.0.0.1; yields its base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _TestHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()
