"""
=============================================================================
HTTP PROTOCOL COMPONENTS
=============================================================================

    http/
    ├── request.py       # Request line + header parsing
    ├── form.py          # title=/content= form decoding
    ├── response.py      # Status line + header serialization
    ├── mime_types.py    # Content type from path
    └── status_codes.py  # The status codes we emit

=============================================================================
"""

from .request import HTTPRequest, Method, RequestParser, parse_request, HEADER_TERMINATOR
from .form import FormFields, decode_form, extract_field, url_decode
from .response import (
    HTTPResponse,
    ResponseBuilder,
    build_headers,
    bad_request,
    forbidden,
    method_not_allowed,
    internal_error,
    service_unavailable,
)
from .mime_types import content_type_for
from .status_codes import HTTPStatus

__all__ = [
    # Request
    "HTTPRequest",
    "Method",
    "RequestParser",
    "parse_request",
    "HEADER_TERMINATOR",
    # Form decoding
    "FormFields",
    "decode_form",
    "extract_field",
    "url_decode",
    # Response
    "HTTPResponse",
    "ResponseBuilder",
    "build_headers",
    "bad_request",
    "forbidden",
    "method_not_allowed",
    "internal_error",
    "service_unavailable",
    "content_type_for",
    "HTTPStatus",
]
