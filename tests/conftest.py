"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Callable, Generator, Optional
import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from formserver import FormServer, ServerConfig
from formserver.http import HTTPRequest, Method
from formserver.middleware import Middleware


INDEX_HTML = b"<html><body><h1>Hello</h1></body></html>\n"
STYLE_CSS = b"body { color: #333; }\n"


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /index.html?v=2 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a form body."""
    body = b"title=Hello+World&content=It%20works%21"
    return (
        b"POST /submit HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        b"Content-Length: %d\r\n"
        b"\r\n"
    ) % len(body) + body


@pytest.fixture
def docroot(tmp_path: Path) -> Path:
    """A small document root."""
    root = tmp_path / "www"
    (root / "css").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "css" / "site.css").write_bytes(STYLE_CSS)
    (root / "app.js").write_bytes(b"console.log('hi');\n")
    (root / "notes.txt").write_bytes(b"plain notes\n")
    (root / "docs" / "index.html").write_bytes(b"<p>docs</p>")
    (root / "bytes.bin").write_bytes(bytes(range(256)))
    # A file outside the root, for traversal tests
    (tmp_path / "secret.txt").write_bytes(b"top secret")
    return root


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Store file whose parent directory doesn't exist yet."""
    return tmp_path / "output" / "post_data.txt"


@pytest.fixture
def config(docroot: Path, store_path: Path) -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=2.0,
        document_root=str(docroot),
        store_path=str(store_path),
        log_level="WARNING",
    )


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Build an HTTPRequest without going through the parser."""
    def _make(method_token: str = "GET", target: str = "/", body: bytes = b"") -> HTTPRequest:
        return HTTPRequest(
            method=Method.from_token(method_token),
            method_token=method_token,
            target=target,
            body=body,
            client_address=("127.0.0.1", 50000),
        )
    return _make


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class ServerThread:
    """Runs a FormServer in a background thread."""

    def __init__(self, server: FormServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_listening(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, raw: bytes, half_close: bool = False, timeout: float = 5.0) -> bytes:
        """
        Send raw bytes and read until the server closes the connection.

        Args:
            half_close: Shut down our write side after sending, which ends
                        a body sent without Content-Length.
        """
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(raw)
            if half_close:
                s.shutdown(socket.SHUT_WR)
            chunks = []
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def start_server() -> Generator[Callable[..., ServerThread], None, None]:
    """Factory: start a server for a config; all are stopped at teardown."""
    started = []

    def _start(config: ServerConfig, *middleware: Middleware) -> ServerThread:
        server = FormServer(config)
        for mw in middleware:
            server.use(mw)
        running = ServerThread(server)
        running.start()
        started.append(running)
        return running

    yield _start

    for running in started:
        running.stop()


@pytest.fixture
def test_server(config: ServerConfig, start_server) -> ServerThread:
    """A running server with the default (hardened) behavior."""
    return start_server(config)
