"""
=============================================================================
HANDLER DISPATCHER
=============================================================================

Branches on the request method. There is no routing table: the target only
matters to the GET handler.

    ┌──────────┬───────────────────────────┬────────────────────────────────┐
    │ Method   │ Default                   │ legacy_responses=True          │
    ├──────────┼───────────────────────────┼────────────────────────────────┤
    │ GET      │ StaticFileHandler         │ StaticFileHandler              │
    │ POST     │ FormHandler (any target)  │ FormHandler (any target)       │
    │ other    │ 405, Allow: GET, POST     │ None: close without a response │
    └──────────┴───────────────────────────┴────────────────────────────────┘

"other" includes lower-case "get", a missing method, and a request line
with fewer than two tokens.

=============================================================================
"""

import logging
from typing import Optional

from .handlers import StaticFileHandler, FormHandler
from .http.request import HTTPRequest, Method
from .http.response import HTTPResponse, method_not_allowed


ALLOWED_METHODS = ["GET", "POST"]


class Dispatcher:
    """
    Picks the handler for a request.

    dispatch() returns None when the connection should be closed without
    writing anything.
    """

    def __init__(
        self,
        static_handler: StaticFileHandler,
        form_handler: FormHandler,
        legacy_responses: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.static_handler = static_handler
        self.form_handler = form_handler
        self.legacy_responses = legacy_responses
        self.logger = logger or logging.getLogger(__name__)

    def dispatch(self, request: HTTPRequest) -> Optional[HTTPResponse]:
        if request.method is Method.GET:
            return self.static_handler.handle(request)

        if request.method is Method.POST:
            return self.form_handler.handle(request)

        if self.legacy_responses:
            self.logger.info(
                f"Unrecognized method {request.method_token!r} from {request.client_ip}, closing"
            )
            return None

        self.logger.info(f"Unrecognized method {request.method_token!r} from {request.client_ip}")
        return method_not_allowed(ALLOWED_METHODS)
