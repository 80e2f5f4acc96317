"""
=============================================================================
FORMSERVER CLI ENTRY POINT
=============================================================================

    python -m formserver                        # Defaults (0.0.0.0:8080)
    python -m formserver --port 3000 --root ./www
    python -m formserver --store-mode append    # Keep every submission
    python -m formserver --isolation process    # Fork per connection
    python -m formserver --legacy               # 1.x-compatible responses

Every flag is optional. A flag that isn't given falls back to its
FORMSERVER_* environment variable, then to the ServerConfig default.

Exit status is 1 when the configuration is invalid or the port can't be
bound, 0 after a clean shutdown.

=============================================================================
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .server import FormServer
from .config import ServerConfig, ISOLATION_MODES, STORE_MODES, LOG_FORMATS
from .exceptions import BindFailure, ConfigError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="formserver",
        description="Serve static files on GET and store form submissions on POST",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m formserver --port 3000 --root ./www
  python -m formserver --store output/all.jsonl --store-mode append
  python -m formserver --isolation process --workers 32
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 8080)")
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        help="Socket read timeout in seconds (default: 30)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--root", "-r", help="Document root for GET (default: .)")
    parser.add_argument("--store", "-s", help="Submission file (default: output/post_data.txt)")
    parser.add_argument("--store-mode", choices=STORE_MODES, help="overwrite (default) or append")

    # ─────────────────────────────────────────────────────────────────────
    # ISOLATION
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--isolation", choices=ISOLATION_MODES, help="thread (default) or process")
    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Worker threads (max is 2x this) or max child processes",
    )

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOR & LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--legacy",
        action="store_true",
        default=None,
        help="200 'File Not Found' for missing files, silent close for unknown methods",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Access log format (default: text)")

    parser.add_argument("--version", "-v", action="version", version=f"formserver {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """
    Environment first, then any flag that was actually given on top.

    Raises:
        ConfigError: If an environment variable doesn't parse.
    """
    config = ServerConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "timeout": args.timeout,
        "document_root": args.root,
        "store_path": args.store,
        "store_mode": args.store_mode,
        "isolation": args.isolation,
        "legacy_responses": args.legacy,
        "log_level": args.log_level,
        "log_file": args.log_file,
        "log_format": args.log_format,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 2 if config.isolation == "thread" else args.workers

    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = FormServer(config)
        server.run()
    except (ConfigError, BindFailure) as e:
        print(f"formserver: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
