"""
=============================================================================
POST: FORM SUBMISSION HANDLER
=============================================================================

    POST /anything HTTP/1.1
    Content-Length: 31

    title=Hello&content=It+works%21

    ┌─────────────────────────┬──────────────────────────────────────────┐
    │ Outcome                 │ Response                                 │
    ├─────────────────────────┼──────────────────────────────────────────┤
    │ stored                  │ 200, Content-Length = record bytes,      │
    │                         │ body = the stored record                 │
    │ title/content missing   │ 400, nothing stored                      │
    │ store not writable      │ 500, Content-Length: 0                   │
    └─────────────────────────┴──────────────────────────────────────────┘

The stored record is:

    Title: Hello
    Content: It works!

=============================================================================
"""

import logging
from typing import Optional

from ..exceptions import MissingField, StoreWriteFailure
from ..http.form import decode_form
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, bad_request, internal_error
from ..http.status_codes import HTTPStatus
from ..storage import SubmissionStore


class FormHandler:
    """Decodes title/content from a POST body and persists the record."""

    def __init__(self, store: SubmissionStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        try:
            fields = decode_form(request.body)
        except MissingField as e:
            self.logger.warning(f"Rejected submission from {request.client_ip}: {e}")
            return bad_request(f"400 Bad Request: {e}")

        record = fields.record()
        try:
            self.store.save(record)
        except StoreWriteFailure as e:
            self.logger.error(f"Submission from {request.client_ip} not stored: {e}")
            return internal_error()

        self.logger.debug(f"Accepted submission {fields.title!r} from {request.client_ip}")
        return ResponseBuilder().status(HTTPStatus.OK).text(record).build()
