"""
=============================================================================
FORMSERVER - Static Files on GET, Form Submissions on POST
=============================================================================

A small HTTP/1.1 server on raw sockets. GET serves files from a document
root; POST decodes a `title=...&content=...` form body and stores it.
Every connection carries one request and is handled in its own execution
unit: a pooled worker thread, or a forked child process.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    formserver/
    ├── __init__.py          # Package exports
    ├── __main__.py          # CLI entry point (python -m formserver)
    ├── server.py            # FormServer orchestrator
    ├── config.py            # ServerConfig dataclass
    ├── exceptions.py        # Error kinds
    ├── dispatcher.py        # GET / POST / other
    ├── storage.py           # SubmissionStore
    ├── core/                # Listener, Connection, isolation runners
    ├── http/                # Request parsing, form decoding, responses
    ├── middleware/          # Access logging
    └── handlers/            # Static files, form submissions

=============================================================================
QUICK START
=============================================================================

    from formserver import FormServer, ServerConfig

    server = FormServer(ServerConfig(port=8080, document_root="www"))
    server.run()

    $ curl -d 'title=Hello&content=World' http://localhost:8080/
    Title: Hello
    Content: World

=============================================================================
"""

__version__ = "1.0.0"

from .server import FormServer
from .config import ServerConfig
from .storage import SubmissionStore, StoreMode

__all__ = ["FormServer", "ServerConfig", "SubmissionStore", "StoreMode", "__version__"]
