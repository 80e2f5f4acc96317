"""
Unit tests for HTTP request parsing.
"""

import pytest

from formserver.http.request import (
    HTTPRequest,
    Method,
    RequestParser,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Method, target and client address come through."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method is Method.GET
        assert request.method_token == "GET"
        assert request.target == "/index.html?v=2"
        assert request.path == "/index.html"
        assert request.client_address == ("127.0.0.1", 12345)
        assert request.client_ip == "127.0.0.1"

    def test_parse_headers(self, sample_get_request: bytes):
        """Header names are lower-cased; lookup is case-insensitive."""
        request = parse_request(sample_get_request)

        assert request.headers["host"] == "localhost:8080"
        assert request.get_header("User-Agent") == "pytest"
        assert request.get_header("X-Missing") == ""

    def test_parse_post_content_length(self, sample_post_request: bytes):
        """Content-Length is parsed; the body is left for the connection."""
        request = parse_request(sample_post_request)

        assert request.method is Method.POST
        assert request.content_length == len(b"title=Hello+World&content=It%20works%21")
        assert request.body == b""

    def test_head_without_terminator(self):
        """A head passed without its trailing blank line still parses."""
        request = parse_request(b"GET /a.css HTTP/1.1\r\nHost: x")

        assert request.target == "/a.css"
        assert request.headers == {"host": "x"}

    def test_repeated_headers_are_joined(self):
        raw = b"GET / HTTP/1.1\r\nAccept: a\r\nAccept: b\r\n\r\n"

        assert parse_request(raw).headers["accept"] == "a, b"

    def test_malformed_header_lines_are_skipped(self):
        raw = b"GET / HTTP/1.1\r\nno colon here\r\nHost: ok\r\n\r\n"

        assert parse_request(raw).headers == {"host": "ok"}


class TestRequestLine:
    """Tests for the lenient request-line split."""

    @pytest.mark.parametrize("line,expected", [
        ("GET /index.html HTTP/1.1", ("GET", "/index.html")),
        ("GET /index.html", ("GET", "/index.html")),
        ("POST /x HTTP/1.0 extra tokens", ("POST", "/x")),
        ("GET", ("", "")),
        ("", ("", "")),
    ])
    def test_parse_request_line(self, line, expected):
        assert RequestParser.parse_request_line(line) == expected

    def test_single_token_is_unrecognized_method(self):
        """Fewer than two tokens gives empty method and target."""
        request = parse_request(b"GET\r\nHost: test\r\n\r\n")

        assert request.method is Method.OTHER
        assert request.method_token == ""
        assert request.target == ""

    def test_method_is_case_sensitive(self):
        request = parse_request(b"get / HTTP/1.1\r\n\r\n")

        assert request.method is Method.OTHER
        assert request.method_token == "get"

    def test_other_methods(self):
        for token in ("PUT", "DELETE", "HEAD", "OPTIONS"):
            assert Method.from_token(token) is Method.OTHER


class TestHTTPRequest:
    """Tests for HTTPRequest properties."""

    @pytest.mark.parametrize("value,expected", [
        ("12", 12),
        (" 7 ", 7),
        ("0", 0),
        ("-1", None),
        ("abc", None),
    ])
    def test_content_length(self, value, expected):
        request = HTTPRequest(method=Method.POST, target="/", headers={"content-length": value})

        assert request.content_length == expected

    def test_content_length_absent(self):
        request = HTTPRequest(method=Method.POST, target="/")

        assert request.content_length is None

    def test_path_strips_query(self):
        request = HTTPRequest(method=Method.GET, target="/a/b.html?x=1?y=2")

        assert request.path == "/a/b.html"
