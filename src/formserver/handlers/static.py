"""
=============================================================================
GET: STATIC FILE HANDLER
=============================================================================

    GET /css/site.css?v=3 HTTP/1.1

    1. Drop the query string          "/css/site.css"
    2. Percent-decode, strip "/"      "css/site.css"
    3. Resolve under document_root    "/srv/www/css/site.css"
    4. Still inside the root?         no  → 403 Forbidden
    5. Directory?                     yes → use its index.html
    6. Read the whole file            fails → FileOpenFailure
    7. 200 OK, exact bytes, Content-Type from the path, no Content-Length

=============================================================================
WHEN THE FILE CAN'T BE OPENED
=============================================================================

    ┌───────────────────────┬────────┬──────────────────────┬──────────────┐
    │ Mode                  │ Status │ Body                 │ Content-Type │
    ├───────────────────────┼────────┼──────────────────────┼──────────────┤
    │ default               │ 404    │ "404 File Not Found" │ text/plain   │
    │ legacy_responses=True │ 200    │ "File Not Found"     │ from path    │
    └───────────────────────┴────────┴──────────────────────┴──────────────┘

The legacy row is kept for clients that depend on it, including the
misleading 200. Path confinement (step 4) applies in both modes.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote

from ..exceptions import FileOpenFailure
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, forbidden
from ..http.status_codes import HTTPStatus


NOT_FOUND_BODY = b"404 File Not Found"
LEGACY_NOT_FOUND_BODY = b"File Not Found"


class PathEscapesRoot(Exception):
    """The requested path resolves outside the document root."""


class StaticFileHandler:
    """
    Serves files from a document root.

    Usage:
        static = StaticFileHandler("/srv/www")
        response = static.handle(request)
    """

    def __init__(
        self,
        root_dir: Union[str, Path],
        index_file: str = "index.html",
        legacy_responses: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.legacy_responses = legacy_responses
        self.logger = logger or logging.getLogger(__name__)

        if not self.root_dir.is_dir():
            raise ValueError(f"Document root does not exist: {root_dir}")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        relative = unquote(request.path).lstrip("/")

        try:
            full_path = self.resolve(relative)
        except PathEscapesRoot:
            self.logger.warning(f"Path traversal attempt from {request.client_ip}: {request.target!r}")
            return forbidden("403 Forbidden")

        try:
            content = self.read_file(full_path, relative)
        except FileOpenFailure as e:
            self.logger.info(str(e))
            return self._not_found(relative)

        # Content type follows the requested path; a directory is typed by
        # the index file it was served from.
        typed_as = relative
        if full_path.name == self.index_file and (self.root_dir / relative).is_dir():
            typed_as = self.index_file
        return ResponseBuilder().file(content, typed_as).build()

    def resolve(self, relative: str) -> Path:
        """
        Map a relative request path to a file under the root.

        Raises:
            PathEscapesRoot: If the resolved path (after "..", symlinks)
                             is outside the root.
        """
        try:
            full_path = (self.root_dir / relative).resolve()
        except (OSError, ValueError) as e:
            # ValueError: embedded NUL byte; OSError: symlink loop
            raise PathEscapesRoot(relative) from e

        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            raise PathEscapesRoot(relative)

        if full_path.is_dir():
            full_path = full_path / self.index_file
        return full_path

    def read_file(self, full_path: Path, requested: str) -> bytes:
        """
        Read a file's full contents.

        Raises:
            FileOpenFailure: Missing, unreadable, or not a regular file.
        """
        try:
            return full_path.read_bytes()
        except FileNotFoundError:
            raise FileOpenFailure(requested or "/")
        except OSError as e:
            # PermissionError, IsADirectoryError (index.html is a dir), ...
            raise FileOpenFailure(requested or "/", e.strerror or str(e))

    def _not_found(self, relative: str) -> HTTPResponse:
        if self.legacy_responses:
            return (ResponseBuilder()
                .status(HTTPStatus.OK)
                .file(LEGACY_NOT_FOUND_BODY, relative)
                .build())
        return (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .body(NOT_FOUND_BODY)
            .content_type("text/plain")
            .build())
