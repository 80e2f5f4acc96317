"""
=============================================================================
CORE: SOCKETS AND ISOLATION
=============================================================================

    core/
    ├── socket_server.py   # Listener: bind, accept loop, signals
    ├── connection.py      # One client socket: read head/body, write, close
    ├── thread_pool.py     # Isolation unit: pooled worker threads
    └── process_runner.py  # Isolation unit: forked child per connection

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool
from .process_runner import ProcessRunner

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "ProcessRunner",
]
