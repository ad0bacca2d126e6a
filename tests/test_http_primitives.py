"""
Unit tests for HTTP primitives.

Tests URLComponents, Headers, Request and Response.
"""

import pytest

from c_http_bridge.http_primitives import (
    Headers,
    Request,
    Response,
    SSLOptions,
    URLComponents,
)


class TestURLComponents:
    """Test URLComponents parsing and rendering."""

    def test_from_url(self) -> None:
        url = URLComponents.from_url("https://api.example.com:8443/v1/data?x=1")
        assert url.scheme == "https"
        assert url.host == "api.example.com"
        assert url.port == 8443
        assert url.path == "/v1/data"
        assert url.query == "x=1"

    def test_default_ports_and_path(self) -> None:
        assert URLComponents.from_url("http://example.com").port == 80
        assert URLComponents.from_url("https://example.com").port == 443
        assert URLComponents.from_url("http://example.com").path == "/"

    def test_target(self) -> None:
        assert URLComponents.from_url("http://h/a/b?c=d").target == "/a/b?c=d"
        assert URLComponents.from_url("http://h/a").target == "/a"

    def test_netloc_omits_default_port(self) -> None:
        assert URLComponents.from_url("http://example.com:80/").netloc == "example.com"
        assert URLComponents.from_url("http://example.com:8080/").netloc == "example.com:8080"

    def test_str_round_trip(self) -> None:
        url = "http://example.com:8080/path?q=1"
        assert str(URLComponents.from_url(url)) == url


class TestHeaders:
    """Test the case-insensitive multi-valued header mapping."""

    def test_case_insensitive_lookup(self) -> None:
        headers = Headers({"Content-Type": "text/html"})
        assert headers["content-type"] == "text/html"
        assert "CONTENT-TYPE" in headers

    def test_keeps_original_case(self) -> None:
        headers = Headers({"X-Request-ID": "1"})
        assert list(headers) == ["X-Request-ID"]

    def test_multiple_values(self) -> None:
        headers = Headers([("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")])
        assert headers.get_all("set-cookie") == ["a=1", "b=2"]
        assert headers.get("set-cookie") == "a=1, b=2"

    def test_set_list(self) -> None:
        headers = Headers()
        headers.set("set-cookie", ["a=1", "b=2"])
        assert headers.get_all("Set-Cookie") == ["a=1", "b=2"]

    def test_update_replaces_per_field(self) -> None:
        headers = Headers({"A": "1", "B": "2"})
        headers.update({"a": "3"})
        assert headers["A"] == "3"
        assert headers["B"] == "2"

    def test_missing(self) -> None:
        headers = Headers()
        assert headers.get("missing") is None
        assert headers.get_all("missing") == []
        with pytest.raises(KeyError):
            headers["missing"]

    def test_remove_and_delete(self) -> None:
        headers = Headers({"A": "1"})
        headers.remove("a")
        headers.remove("a")
        assert "A" not in headers
        with pytest.raises(KeyError):
            del headers["a"]

    def test_copy_is_independent(self) -> None:
        headers = Headers({"A": "1"})
        copy = headers.copy()
        copy.add("A", "2")
        assert headers.get_all("A") == ["1"]
        assert copy.get_all("A") == ["1", "2"]

    def test_equality_ignores_case(self) -> None:
        assert Headers({"A": "1"}) == Headers({"a": "1"})


class TestRequest:
    """Test Request creation and validation."""

    def test_create(self) -> None:
        request = Request.create(
            "post", "http://example.com/submit",
            headers={"Content-Type": "text/plain"}, content="hi",
        )
        assert request.method == "POST"
        assert request.host == "example.com"
        assert request.port == 80
        assert request.scheme == "http"
        assert request.content == b"hi"
        assert request.headers["content-type"] == "text/plain"

    def test_immutable(self) -> None:
        request = Request.create("GET", "http://example.com/")
        with pytest.raises(Exception):
            request.method = "POST"

    def test_validation(self) -> None:
        with pytest.raises(ValueError):
            Request(method="", url=URLComponents.from_url("http://example.com/"))
        with pytest.raises(ValueError):
            Request.create("GET", "http:///no-host")
        with pytest.raises(ValueError):
            Request(method="GET", url=URLComponents.from_url("http://h/"), content="text")

    def test_with_methods(self) -> None:
        request = Request.create("GET", "http://example.com/", ssl_options=SSLOptions(verify=False))
        moved = request.with_url("https://other.example.com/x").with_method("head")
        assert moved.method == "HEAD"
        assert moved.host == "other.example.com"
        assert moved.ssl_options == SSLOptions(verify=False)
        assert request.host == "example.com"


class TestResponse:
    """Test Response defaults and status helpers."""

    def test_starts_as_internal_error(self) -> None:
        response = Response()
        assert response.code == 599
        assert response.message == "Internal Server Error"
        assert response.content == b""
        assert response.is_error

    @pytest.mark.parametrize(
        "code, success, redirect, error",
        [(200, True, False, False), (302, False, True, False), (404, False, False, True)],
    )
    def test_status_helpers(self, code, success, redirect, error) -> None:
        response = Response(code=code, message="")
        assert response.is_success is success
        assert response.is_redirect is redirect
        assert response.is_error is error

    def test_status_line(self) -> None:
        assert Response(code=404, message="Not Found").status_line == "404 Not Found"

    def test_redirect_chain(self) -> None:
        first = Response(code=301, message="Moved")
        second = Response(code=302, message="Found", previous=first)
        final = Response(code=200, message="OK", previous=second)
        assert final.redirects() == [first, second]
