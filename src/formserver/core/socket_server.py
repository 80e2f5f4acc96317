"""
=============================================================================
LISTENER: TCP SOCKET SERVER
=============================================================================

Binds the port, accepts connections one at a time, and hands each one off.
The accept loop never handles a request itself, so a slow client can't
stall it.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create the listening socket
    2. bind()      Reserve HOST:PORT         ── fails → BindFailure (fatal)
    3. listen()    Start queueing connections
    4. accept()    Take the next connection  ── fails → logged, loop goes on
    5. close()     Release the port on shutdown

=============================================================================
THE ACCEPT LOOP
=============================================================================

    while running:
        ├──► accept()            (1 second timeout)
        │       ├── connection → wrap in Connection → handler(conn)
        │       ├── timeout    → nothing to do
        │       └── OSError    → log AcceptFailure, keep going
        │
        └──► on_tick()           (e.g. reap finished child processes)

The timeout makes the loop wake up at least once a second, which is what
lets shutdown() and child reaping happen without a second thread.

=============================================================================
SIGNALS
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, kill) trigger a graceful
shutdown. Python only allows signal handlers on the main thread, so when
the server runs on any other thread (tests, embedding) they are skipped.

=============================================================================
"""

import socket
import signal
import logging
import threading
import time
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from ..exceptions import BindFailure, AcceptFailure
from .connection import Connection


class SocketServer:
    """
    Low-level TCP listener.

    Usage:
        def handle(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle)  # Blocks until shutdown()
    """

    ACCEPT_POLL_INTERVAL = 1.0
    ACCEPT_ERROR_BACKOFF = 0.05

    def __init__(self, config: ServerConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._listening = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        Once listening this is the real address, so port=0 in the config
        reports the port the OS picked.
        """
        if self._socket is not None:
            try:
                return self._socket.getsockname()[:2]
            except OSError:
                pass
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind immediately after a restart instead of waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses are written in two sends (head, then body); don't let
        # Nagle hold the second one back.
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(self.ACCEPT_POLL_INTERVAL)
        return sock

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            self.logger.debug("Not on the main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            self.logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(
        self,
        connection_handler: Callable[[Connection], None],
        on_tick: Optional[Callable[[], None]] = None,
    ):
        """
        Bind, listen and run the accept loop. Blocks until shutdown().

        Args:
            connection_handler: Called with each accepted Connection. Must
                                return quickly (hand off, don't handle).
            on_tick: Called after every accept attempt, including timeouts.

        Raises:
            BindFailure: If the address can't be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            self.logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise BindFailure(self.config.host, self.config.port, str(e)) from e

        self._socket.listen(self.config.backlog)

        self._running = True
        self._setup_signals()

        host, port = self.address
        self.logger.info(f"Server listening on {host}:{port}")
        self._listening.set()

        try:
            self._accept_loop(connection_handler, on_tick)
        finally:
            self._cleanup()

    def _accept_loop(
        self,
        connection_handler: Callable[[Connection], None],
        on_tick: Optional[Callable[[], None]],
    ):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                client_socket = None
            except OSError as e:
                if not self._running:
                    break  # Listening socket closed by shutdown
                failure = AcceptFailure(f"Accept error: {e}")
                self.logger.error(str(failure))
                time.sleep(self.ACCEPT_ERROR_BACKOFF)
                client_socket = None

            if client_socket is not None:
                self.logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
                conn = Connection(
                    socket=client_socket,
                    address=client_address,
                    buffer_size=self.config.buffer_size,
                    timeout=self.config.timeout,
                    max_request_size=self.config.max_request_size,
                )
                connection_handler(conn)

            if on_tick is not None:
                on_tick()

    def close_listener(self):
        """
        Close the listening descriptor without stopping the loop.

        Called in forked children, which inherit the listening socket but
        must never accept on it.
        """
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass

    def shutdown(self):
        """Stop the accept loop. Safe to call more than once, from any thread."""
        if self._running:
            self.logger.info("Shutting down listener...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self._listening.clear()
        self.logger.info("Listener stopped")

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is bound and listening."""
        return self._listening.wait(timeout)
