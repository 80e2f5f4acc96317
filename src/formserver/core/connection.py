"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket. A Connection carries exactly one request
and one response, then it is closed: there is no keep-alive.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

recv() hands back whatever the kernel has buffered, which may be half a
request line or a request line plus part of the body:

    First recv():  "POST /submit HT"
    Second recv(): "TP/1.1\\r\\nContent-Length: 12\\r\\n\\r\\ntitle=a&con"
    Third recv():  "tent=b"

So reading happens in two phases, both working off one buffer:

    ┌─────────────────────────────────────────────────────────────────┐
    │  read_head()                                                    │
    │    recv() until the buffer contains \\r\\n\\r\\n                    │
    │    return everything up to and including the terminator         │
    │    keep the rest in the buffer (it's the start of the body)     │
    ├─────────────────────────────────────────────────────────────────┤
    │  read_body(content_length)                                      │
    │    Content-Length given → recv() until we have that many bytes  │
    │                           (or the client closes early)          │
    │    no Content-Length    → recv() until the client closes its    │
    │                           side or goes quiet for `timeout`      │
    └─────────────────────────────────────────────────────────────────┘

=============================================================================
FAILURES
=============================================================================

Anything that stops read_head() from finding the terminator (EOF, reset,
timeout, too many bytes) raises ReadFailure. The caller closes the
connection without sending a response.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..exceptions import ReadFailure
from ..http.request import HEADER_TERMINATOR


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, mostly for logging."""

    NEW = "new"                # Just accepted
    READING = "reading"        # Reading head or body
    PROCESSING = "processing"  # Dispatcher is running
    WRITING = "writing"        # Sending the response
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    Represents one client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique id used in log lines.
        state: Current lifecycle state.
        created_at: When the connection was accepted.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        # settimeout(None) would make the socket blocking forever, which is
        # exactly what a None timeout asks for.
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_head(self) -> bytes:
        """
        Read until the header terminator.

        Returns:
            The request head, including the trailing \\r\\n\\r\\n.

        Raises:
            ReadFailure: On EOF, socket error, timeout, or oversize head.
        """
        self.state = ConnectionState.READING

        while HEADER_TERMINATOR not in self._buffer:
            try:
                chunk = self.socket.recv(self.buffer_size)
            except socket.timeout:
                raise ReadFailure(f"Timed out after {self.timeout}s waiting for headers")
            except OSError as e:
                raise ReadFailure(f"Socket error while reading headers: {e}") from e

            if not chunk:
                raise ReadFailure("Connection closed before end of headers")

            self._buffer += chunk
            if len(self._buffer) > self.max_request_size:
                raise ReadFailure(f"Request head too large: {len(self._buffer)} bytes")

        end = self._buffer.find(HEADER_TERMINATOR) + len(HEADER_TERMINATOR)
        head, self._buffer = self._buffer[:end], self._buffer[end:]
        return head

    def read_body(self, content_length: Optional[int] = None) -> bytes:
        """
        Read the request body.

        Args:
            content_length: Declared Content-Length. None means the body
                            runs until the client closes its side.

        Returns:
            Body bytes. With a Content-Length, at most that many; fewer if
            the client closed early.

        Raises:
            ReadFailure: On a socket error, a timeout while a declared
                         Content-Length is still unmet, or an oversize body.
        """
        self.state = ConnectionState.READING

        if content_length is not None:
            if content_length > self.max_request_size:
                raise ReadFailure(f"Declared body too large: {content_length} bytes")

            while len(self._buffer) < content_length:
                try:
                    chunk = self.socket.recv(self.buffer_size)
                except socket.timeout:
                    raise ReadFailure(
                        f"Timed out with {len(self._buffer)}/{content_length} body bytes"
                    )
                except OSError as e:
                    raise ReadFailure(f"Socket error while reading body: {e}") from e
                if not chunk:
                    break  # Client closed early, use what we have
                self._buffer += chunk

            body, self._buffer = self._buffer[:content_length], self._buffer[content_length:]
            return body

        # No Content-Length: drain until EOF. A quiet client ends the body
        # after one timeout period.
        while True:
            try:
                chunk = self.socket.recv(self.buffer_size)
            except socket.timeout:
                logger.debug(f"[{self.id}] Body read idle, treating as end of body")
                break
            except (ConnectionResetError, BrokenPipeError):
                break
            except OSError as e:
                raise ReadFailure(f"Socket error while reading body: {e}") from e
            if not chunk:
                break
            self._buffer += chunk
            if len(self._buffer) > self.max_request_size:
                raise ReadFailure(f"Request body too large: {len(self._buffer)} bytes")

        body, self._buffer = self._buffer, b""
        return body

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send bytes with sendall().

        Returns:
            True if everything was sent, False if the client went away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        shutdown(SHUT_WR) sends FIN so the client sees end-of-response,
        a short drain keeps unread request bytes from turning the close
        into a reset, then the descriptor is released.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        self.release()
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def reject(self, data: bytes, drain_limit: int = 64 * 1024):
        """
        Send a short refusal and close without waiting on the client.

        Runs on the listener thread, so nothing here may block: the send
        gets a short timeout, and only bytes the kernel already holds are
        drained (at most drain_limit) before the descriptor is released.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.settimeout(0.2)
            self.socket.sendall(data)
            self.socket.shutdown(socket.SHUT_WR)
        except OSError as e:
            logger.debug(f"[{self.id}] Rejection not delivered: {e}")

        try:
            self.socket.setblocking(False)
            drained = 0
            while drained < drain_limit:
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Nothing buffered (BlockingIOError) or peer gone

        self.release()

    def release(self):
        """
        Release this process's descriptor without a TCP shutdown.

        Used by the parent after forking: the child owns the conversation,
        and shutdown() here would end it for both.
        """
        try:
            self.socket.close()
        except OSError:
            pass
        self.state = ConnectionState.CLOSED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
