"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Every response this server sends has the same tiny shape:

    HTTP/1.1 200 OK\\r\\n                  ← Status line
    Content-Type: text/html\\r\\n          ← Always present
    Content-Length: 27\\r\\n               ← Only when framing needs it
    Connection: close\\r\\n                ← Always, no keep-alive
    \\r\\n                                 ← Header terminator
    <body bytes>

=============================================================================
FRAMING: WHEN IS Content-Length SENT?
=============================================================================

The client has to know where the body ends. There are two ways to tell it:

    1. Content-Length: n     → "read exactly n bytes"
    2. Close the connection  → "read until EOF"

GET responses use (2): the file bytes are written and the socket is
closed, so Content-Length is left out. POST acknowledgements and error
responses use (1) and (2) together.

    ┌──────────────────────────┬──────────────────┐
    │ Response                 │ Content-Length?  │
    ├──────────────────────────┼──────────────────┤
    │ GET 200 (file)           │ no               │
    │ GET 404 / legacy 200     │ no               │
    │ POST 200 (ack)           │ yes (record len) │
    │ 400 / 403 / 405          │ yes              │
    │ 500 (store failure)      │ yes, 0           │
    └──────────────────────────┴──────────────────┘

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Union

from .status_codes import HTTPStatus
from .mime_types import content_type_for, DEFAULT_CONTENT_TYPE


def build_headers(
    status: HTTPStatus,
    content_type: str,
    content_length: Optional[int] = None,
    extra_headers: Optional[Dict[str, str]] = None,
) -> bytes:
    """
    Serialize the status line and header block.

    Args:
        status: Response status.
        content_type: Value of the Content-Type header.
        content_length: Value of Content-Length, or None to omit it.
        extra_headers: Additional headers (e.g. Allow on 405), written
                       after Content-Length.

    Returns:
        Header bytes ending with the blank-line terminator.

    Example:
        >>> build_headers(HTTPStatus.OK, "text/css")
        b'HTTP/1.1 200 OK\\r\\nContent-Type: text/css\\r\\nConnection: close\\r\\n\\r\\n'
    """
    lines = [f"HTTP/1.1 {int(status)} {status.phrase}"]
    lines.append(f"Content-Type: {content_type}")
    if content_length is not None:
        lines.append(f"Content-Length: {content_length}")
    for name, value in (extra_headers or {}).items():
        lines.append(f"{name}: {value}")
    lines.append("Connection: close")

    # "\r\n".join() leaves the last line unterminated, so add the final
    # CRLF plus the empty line that ends the header block.
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be written to a connection.

    Attributes:
        status: Status code.
        content_type: Content-Type header value.
        body: Body bytes.
        content_length: Declared Content-Length, or None to frame the body
                        by closing the connection.
        headers: Extra headers beyond the fixed set.
    """

    status: HTTPStatus = HTTPStatus.OK
    content_type: str = DEFAULT_CONTENT_TYPE
    body: bytes = b""
    content_length: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def status_line(self) -> str:
        """The status line without its CRLF, e.g. "HTTP/1.1 200 OK"."""
        return f"HTTP/1.1 {int(self.status)} {self.status.phrase}"

    def head_bytes(self) -> bytes:
        """Serialize the status line and headers."""
        return build_headers(
            self.status,
            self.content_type,
            self.content_length,
            self.headers,
        )

    def to_bytes(self) -> bytes:
        """Serialize the full response (headers, then body)."""
        return self.head_bytes() + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.BAD_REQUEST)
            .text("Missing form field: content")
            .build())

    text() declares Content-Length automatically; file() does not, since
    served files are framed by connection close.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._content_type = DEFAULT_CONTENT_TYPE
        self._body = b""
        self._content_length: Optional[int] = None
        self._headers: Dict[str, str] = {}

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        self._content_type = content_type
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set the raw body without touching Content-Length."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        return self

    def content_length(self, length: Optional[int]) -> "ResponseBuilder":
        """Declare (or, with None, drop) the Content-Length header."""
        self._content_length = length
        return self

    def text(self, text: Union[str, bytes]) -> "ResponseBuilder":
        """Plain text body with a matching Content-Length."""
        self.body(text)
        self._content_type = "text/plain"
        self._content_length = len(self._body)
        return self

    def file(self, content: bytes, path: str) -> "ResponseBuilder":
        """File body, content type derived from the requested path."""
        self._body = content
        self._content_type = content_type_for(path)
        self._content_length = None
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            content_type=self._content_type,
            body=self._body,
            content_length=self._content_length,
            headers=dict(self._headers),
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def bad_request(message: str = "Bad Request") -> HTTPResponse:
    """400 with a short text explanation."""
    return ResponseBuilder().status(HTTPStatus.BAD_REQUEST).text(message).build()


def forbidden(message: str = "Forbidden") -> HTTPResponse:
    """403, used when a path escapes the document root."""
    return ResponseBuilder().status(HTTPStatus.FORBIDDEN).text(message).build()


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 with the Allow header RFC 7231 requires."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .text("Method Not Allowed")
        .build())


def internal_error() -> HTTPResponse:
    """500 with an empty body and Content-Length: 0."""
    return (ResponseBuilder()
        .status(HTTPStatus.INTERNAL_SERVER_ERROR)
        .content_length(0)
        .build())


def service_unavailable(message: str = "Server overloaded") -> HTTPResponse:
    """503, sent when no execution unit can take the connection."""
    return ResponseBuilder().status(HTTPStatus.SERVICE_UNAVAILABLE).text(message).build()
