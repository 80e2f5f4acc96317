"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

The server needs very little from a request:

    POST /submit HTTP/1.1\\r\\n          ← request line: METHOD TARGET [VERSION]
    Host: localhost:8080\\r\\n
    Content-Length: 23\\r\\n             ← used to frame the body
    \\r\\n                               ← header terminator
    title=Hello&content=Hi              ← body (POST only)

=============================================================================
LENIENT REQUEST LINE
=============================================================================

The request line is split on whitespace and only the first two tokens
matter. A missing version is fine, extra tokens are ignored, and a line
with fewer than two tokens is NOT an error: method and target simply come
out empty and the dispatcher treats the request as an unrecognized method.

    "GET /index.html HTTP/1.1"   → ("GET", "/index.html")
    "GET /index.html"            → ("GET", "/index.html")
    "GET"                        → ("", "")
    ""                           → ("", "")

=============================================================================
HEADERS
=============================================================================

Header lines are parsed into a dict with lower-cased names. The only header
the server acts on is Content-Length, which decides how much body to read.
Malformed header lines are skipped.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional
import re


HEADER_TERMINATOR = b"\r\n\r\n"


class Method(Enum):
    """Request methods the dispatcher distinguishes."""

    GET = "GET"
    POST = "POST"
    OTHER = "OTHER"

    @classmethod
    def from_token(cls, token: str) -> "Method":
        """Classify a raw method token. Matching is case-sensitive."""
        if token == "GET":
            return cls.GET
        if token == "POST":
            return cls.POST
        return cls.OTHER


@dataclass
class HTTPRequest:
    """
    One parsed request. Lives only for a single request-handling cycle.

    Attributes:
        method: Classified method (GET, POST or OTHER).
        method_token: The raw token from the request line ("" if absent).
        target: Raw path/query string ("" if absent).
        headers: Header names (lower-cased) → values.
        body: Raw body bytes; empty unless the request is a POST.
        client_address: (ip, port) of the peer.
    """

    method: Method
    target: str
    method_token: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)

    @property
    def content_length(self) -> Optional[int]:
        """
        Declared Content-Length, or None if absent or unparseable.

        None (not 0) is returned for a missing header because the body
        reader falls back to reading until close in that case.
        """
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            length = int(value.strip())
        except ValueError:
            return None
        return length if length >= 0 else None

    @property
    def path(self) -> str:
        """Target with any query string removed."""
        return self.target.split("?", 1)[0]

    @property
    def client_ip(self) -> str:
        return self.client_address[0]

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses the header section of a request into an HTTPRequest.

    The parser never raises on odd input: a short request line becomes an
    empty method/target, and bad header lines are dropped. Size limits and
    I/O errors are the Connection's business, not the parser's.
    """

    HEADER_PATTERN = re.compile(r"^([^:\s][^:]*):\s*(.*)$")

    def parse(
        self,
        head: bytes,
        client_address: tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse raw header bytes (with or without the terminator).

        Args:
            head: Bytes up to (and optionally including) \\r\\n\\r\\n.
            client_address: Peer address for logging.

        Returns:
            HTTPRequest with an empty body; the caller attaches the body.
        """
        end = head.find(HEADER_TERMINATOR)
        if end != -1:
            head = head[:end]

        # latin-1 maps every byte to one character, so nothing in the
        # header section can fail to decode.
        text = head.decode("latin-1")
        lines = text.split("\r\n")

        method_token, target = self.parse_request_line(lines[0] if lines else "")
        headers = self._parse_headers(lines[1:])

        return HTTPRequest(
            method=Method.from_token(method_token),
            method_token=method_token,
            target=target,
            headers=headers,
            client_address=client_address,
        )

    @staticmethod
    def parse_request_line(line: str) -> tuple[str, str]:
        """
        Split a request line into (method, target).

        Only the first two whitespace-delimited tokens are used. With fewer
        than two tokens, both come back empty.
        """
        tokens = line.split()
        if len(tokens) < 2:
            return "", ""
        return tokens[0], tokens[1]

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for line in lines:
            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue
            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()

            # Repeated headers combine with a comma (RFC 7230 §3.2.2)
            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value
        return headers


def parse_request(
    head: bytes,
    client_address: tuple[str, int] = ("", 0),
) -> HTTPRequest:
    """Parse a request head with a default RequestParser."""
    return RequestParser().parse(head, client_address)
