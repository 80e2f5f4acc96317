"""
=============================================================================
FORM SERVER
=============================================================================

Ties the components together into a running server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   FormServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌────────────────┐    ┌──────────────┐       │
    │    │ SocketServer │    │  ThreadPool    │    │  Dispatcher  │       │
    │    │  (Listener)  │    │  or            │    │  GET → file  │       │
    │    └──────┬───────┘    │  ProcessRunner │    │  POST → form │       │
    │           ▼            └────────────────┘    └──────┬───────┘       │
    │    ┌──────────────┐                                 ▼               │
    │    │  Connection  │                         ┌──────────────┐        │
    │    └──────────────┘                         │SubmissionStore│       │
    │                                             └──────────────┘        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ONE CONNECTION, START TO FINISH
=============================================================================

    1. SocketServer accepts               (listener thread)
    2. Hand off to the isolation runner   (503 if it's full)
    3. read_head()                        ReadFailure → close, no response
    4. Parse request line and headers
    5. POST only: read_body()             framed by Content-Length, or EOF
    6. LoggingMiddleware → Dispatcher     exception → 500
    7. Write headers, then body           None response → nothing written
    8. Close                              always; no keep-alive

=============================================================================
"""

import logging
from pathlib import Path
from typing import Optional, Callable, Union

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool, ProcessRunner
from .dispatcher import Dispatcher
from .exceptions import ReadFailure
from .handlers import StaticFileHandler, FormHandler
from .http import (
    HTTPRequest, HTTPResponse, Method, RequestParser,
    internal_error, service_unavailable,
)
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware
from .storage import SubmissionStore


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class FormServer:
    """
    Static file and form submission server.

    Usage:
        server = FormServer(ServerConfig(port=8080, document_root="www"))
        server.run()  # Blocks until Ctrl+C / SIGTERM / shutdown()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            config: Server configuration. Defaults are used if omitted.
            logger: Logger handed to every component. When omitted each
                    component logs to its own module logger.

        Raises:
            ConfigError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()
        self.logger = logger or logging.getLogger(__name__)

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(self.config, logger=logger)
        self._parser = RequestParser()

        self._runner: Union[ThreadPool, ProcessRunner]
        if self.config.isolation == "process":
            self._runner = ProcessRunner(
                max_children=self.config.max_workers,
                in_child=self._socket_server.close_listener,
                logger=logger,
            )
        else:
            self._runner = ThreadPool(
                min_workers=self.config.min_workers,
                max_workers=self.config.max_workers,
                queue_size=self.config.queue_size,
                logger=logger,
            )

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._store = SubmissionStore(
            self.config.store_path,
            mode=self.config.store_mode,
            logger=logger,
        )
        self._dispatcher = Dispatcher(
            StaticFileHandler(
                self.config.document_root,
                legacy_responses=self.config.legacy_responses,
                logger=logger,
            ),
            FormHandler(self._store, logger=logger),
            legacy_responses=self.config.legacy_responses,
            logger=logger,
        )

        self._middleware = MiddlewarePipeline(logger=logger)
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))

        self._handler: Optional[Callable[[HTTPRequest], Optional[HTTPResponse]]] = None
        self._file_handler: Optional[logging.Handler] = None

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "FormServer":
        """Add middleware (inside the access logger). Call before run()."""
        self._middleware.add(middleware)
        return self

    @property
    def store(self) -> SubmissionStore:
        return self._store

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def address(self) -> tuple:
        """Bound (host, port); the real port once listening."""
        return self._socket_server.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Raises:
            BindFailure: If the port can't be bound.
        """
        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._handler = self._middleware.wrap(self._dispatcher.dispatch)
        self._runner.start()

        self.logger.info(
            f"Starting form server on {self.config.host}:{self.config.port} "
            f"(root={Path(self.config.document_root).resolve()}, "
            f"store={self.config.store_path}, isolation={self.config.isolation})"
        )

        on_tick = self._runner.reap if isinstance(self._runner, ProcessRunner) else None
        try:
            self._socket_server.start(self._handle_connection, on_tick=on_tick)
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask the accept loop to stop. run() returns once it has."""
        self._socket_server.shutdown()

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_listening(timeout)

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        logging.getLogger("formserver").setLevel(level)

        if self.config.log_file and self._file_handler is None:
            log_path = Path(self.config.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handler = logging.FileHandler(log_path, mode="a")
            self._file_handler.setLevel(level)
            self._file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
            logging.getLogger().addHandler(self._file_handler)

    def _shutdown(self):
        self.logger.info("Shutting down server...")
        self._runner.shutdown(wait=True, timeout=self.config.timeout)
        self.logger.info("Server stopped")

        if self._file_handler is not None:
            logging.getLogger().removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a fresh connection to the isolation runner (listener thread)."""
        try:
            submitted = self._runner.submit(self._process_connection, args=(conn,))
        except (OSError, RuntimeError) as e:
            # fork() failed, or the runner is already shutting down
            self.logger.error(f"[{conn.id}] Could not start handler: {e}")
            submitted = False

        if not submitted:
            self.logger.warning(f"[{conn.id}] No execution unit free, rejecting {conn.client_ip}")
            conn.reject(service_unavailable().to_bytes())
        elif isinstance(self._runner, ProcessRunner):
            # The child owns the socket now
            conn.release()

    def _process_connection(self, conn: Connection):
        """Serve exactly one request on conn, then close it."""
        with conn:
            try:
                head = conn.read_head()
                request = self._parser.parse(head, conn.address)
                if request.method is Method.POST:
                    request.body = conn.read_body(request.content_length)
            except ReadFailure as e:
                self.logger.warning(f"[{conn.id}] {conn.client_ip}: {e}")
                return

            conn.state = conn.state.PROCESSING
            try:
                response = self._handler(request)
            except Exception as e:
                self.logger.exception(f"[{conn.id}] Handler error: {e}")
                response = internal_error()

            if response is None:
                self.logger.debug(f"[{conn.id}] Closing without a response")
                return

            if conn.send_response(response.head_bytes()) and response.body:
                conn.send_response(response.body)
