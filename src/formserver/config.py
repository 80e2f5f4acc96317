"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the server. One dataclass, three sources:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m formserver --port 3000                          │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── FORMSERVER_PORT=3000 python -m formserver                 │
    │                                                                      │
    │   3. Defaults in this dataclass                                     │
    │      └── port=8080, store=output/post_data.txt                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigError


ISOLATION_MODES = ("thread", "process")
STORE_MODES = ("overwrite", "append")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout, max_request_size
    FILES       document_root, store_path, store_mode
    ISOLATION   isolation, min_workers, max_workers, queue_size
    BEHAVIOR    legacy_responses
    LOGGING     log_level, log_file, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    port: int = 8080
    """0 lets the OS pick a free port (handy in tests)."""

    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """
    Per-read socket timeout in seconds. A client that never finishes its
    headers is dropped after this long. None waits forever.
    """

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Upper bound on header + body bytes read from one connection."""

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    document_root: str = "."
    """GET requests are resolved under this directory, never outside it."""

    store_path: str = os.path.join("output", "post_data.txt")
    store_mode: str = "overwrite"
    """'overwrite' keeps only the latest record; 'append' keeps them all."""

    # ─────────────────────────────────────────────────────────────────────
    # ISOLATION
    # ─────────────────────────────────────────────────────────────────────

    isolation: str = "thread"
    """
    'thread'  - each connection runs on a pooled worker thread
    'process' - each connection runs in a forked child process
    """

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOR
    # ─────────────────────────────────────────────────────────────────────

    legacy_responses: bool = False
    """
    Compatibility with older clients of this server:
    missing files answer 200 "File Not Found" instead of 404, and unknown
    methods get the connection closed instead of 405.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_file: Optional[str] = None
    """Also write log records to this file (directories are created)."""

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        FORMSERVER_HOST         Bind address (default: 0.0.0.0)
        FORMSERVER_PORT         Port (default: 8080)
        FORMSERVER_ROOT         Document root (default: .)
        FORMSERVER_STORE        Store file (default: output/post_data.txt)
        FORMSERVER_STORE_MODE   overwrite | append
        FORMSERVER_ISOLATION    thread | process
        FORMSERVER_TIMEOUT      Read timeout in seconds (default: 30)
        FORMSERVER_LOG_LEVEL    Logging level (default: INFO)
        FORMSERVER_LOG_FILE     Log file path (default: none)
        FORMSERVER_LEGACY       1/true/yes to enable legacy responses

        =====================================================================

        Raises:
            ConfigError: If a numeric variable doesn't parse.
        """
        defaults = cls()
        try:
            port = int(os.getenv("FORMSERVER_PORT", str(defaults.port)))
            timeout = float(os.getenv("FORMSERVER_TIMEOUT", str(defaults.timeout)))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric environment variable: {e}") from e

        return cls(
            host=os.getenv("FORMSERVER_HOST", defaults.host),
            port=port,
            document_root=os.getenv("FORMSERVER_ROOT", defaults.document_root),
            store_path=os.getenv("FORMSERVER_STORE", defaults.store_path),
            store_mode=os.getenv("FORMSERVER_STORE_MODE", defaults.store_mode),
            isolation=os.getenv("FORMSERVER_ISOLATION", defaults.isolation),
            timeout=timeout,
            log_level=os.getenv("FORMSERVER_LOG_LEVEL", defaults.log_level),
            log_file=os.getenv("FORMSERVER_LOG_FILE") or None,
            legacy_responses=os.getenv("FORMSERVER_LEGACY", "").lower() in ("1", "true", "yes"),
        )

    def validate(self) -> None:
        """
        Validate configuration values (fail fast, at startup).

        Raises:
            ConfigError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.isolation not in ISOLATION_MODES:
            raise ConfigError(f"isolation must be one of {ISOLATION_MODES}")

        if self.isolation == "process" and not hasattr(os, "fork"):
            raise ConfigError("isolation='process' needs os.fork (POSIX only)")

        if self.store_mode not in STORE_MODES:
            raise ConfigError(f"store_mode must be one of {STORE_MODES}")

        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"log_format must be one of {LOG_FORMATS}")

        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if not os.path.isdir(self.document_root):
            raise ConfigError(f"document_root is not a directory: {self.document_root}")
