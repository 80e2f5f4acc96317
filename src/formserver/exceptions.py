"""
=============================================================================
ERROR KINDS
=============================================================================

Every failure the server can hit has a name here. Each exception carries
the HTTP status it maps to, so handlers can turn an error into a response
without a lookup table:

    ┌──────────────────────┬──────────┬──────────────────────────────────┐
    │ Exception            │ Status   │ What happens                     │
    ├──────────────────────┼──────────┼──────────────────────────────────┤
    │ BindFailure          │ -        │ Fatal, server does not start     │
    │ AcceptFailure        │ -        │ Logged, accept loop continues    │
    │ ReadFailure          │ -        │ Connection closed, no response   │
    │ MissingField         │ 400      │ Bad Request, nothing stored      │
    │ FileOpenFailure      │ 404      │ Not Found (or legacy 200)        │
    │ StoreWriteFailure    │ 500      │ Internal Server Error            │
    │ ConfigError          │ -        │ Fatal at startup                 │
    └──────────────────────┴──────────┴──────────────────────────────────┘

All per-request errors stay inside the execution unit that raised them.
Nothing in this list is retried.

=============================================================================
"""

from typing import Optional


class FormServerError(Exception):
    """Base exception for all server errors."""

    status_code: Optional[int] = None

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigError(FormServerError):
    """Raised when ServerConfig.validate() rejects a value."""


# ─────────────────────────────────────────────────────────────────────────
# LISTENER ERRORS
# ─────────────────────────────────────────────────────────────────────────

class BindFailure(FormServerError):
    """
    The listening socket could not be bound.

    Usually "Address already in use" or a privileged port without root.
    """

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(f"Failed to bind to {host}:{port}: {reason}")
        self.host = host
        self.port = port


class AcceptFailure(FormServerError):
    """accept() failed for a single connection."""


# ─────────────────────────────────────────────────────────────────────────
# PER-REQUEST ERRORS
# ─────────────────────────────────────────────────────────────────────────

class ReadFailure(FormServerError):
    """
    Reading the request failed.

    Raised on EOF before the header terminator, a socket error, a read
    timeout, or a header section over the size limit. No response is sent.
    """


class MissingField(FormServerError):
    """A required form field (title or content) is absent from the body."""

    status_code = 400

    def __init__(self, field_name: str):
        super().__init__(f"Missing form field: {field_name}")
        self.field_name = field_name


class FileOpenFailure(FormServerError):
    """The requested file does not exist or cannot be read."""

    status_code = 404

    def __init__(self, path: str, reason: str = "not found"):
        super().__init__(f"Cannot open {path}: {reason}")
        self.path = path


class StoreWriteFailure(FormServerError):
    """The submission store could not be written."""

    status_code = 500
