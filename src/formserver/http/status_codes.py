"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Only the status codes this server can actually emit. Each one is a real
integer (IntEnum) and knows its reason phrase:

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── .phrase
              └───────── int(status)

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200                            # File served / submission stored

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400                   # Form is missing title or content
    FORBIDDEN = 403                     # Path escapes the document root
    NOT_FOUND = 404                     # File does not exist
    METHOD_NOT_ALLOWED = 405            # Neither GET nor POST

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500         # Store write failed, handler crashed
    SERVICE_UNAVAILABLE = 503           # Worker queue is full

    @property
    def phrase(self) -> str:
        """Get the reason phrase for this status code."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx status code."""
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        """Check if this is a 4xx status code."""
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """Check if this is a 5xx status code."""
        return 500 <= self < 600


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
