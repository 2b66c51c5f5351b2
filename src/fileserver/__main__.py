"""
=============================================================================
FILE SERVER CLI ENTRY POINT
=============================================================================

    # Read ./config.json and serve
    python -m fileserver

    # Another config file
    python -m fileserver --config /etc/fileserver.json

    # Override single settings
    python -m fileserver --port 3000 --web-root ./public

    # More worker threads, verbose logs
    python -m fileserver --workers 16 --log-level DEBUG

=============================================================================
STARTUP SEQUENCE
=============================================================================

1. Load config.json (missing or invalid → exit 1)
2. Apply FILESERVER_* environment variables, then CLI flags
3. Validate
4. Provision: logs/ directory, default index.html and 404.html
5. Bind and serve until Ctrl+C (bind failure → exit 1)

=============================================================================
"""

import argparse
import sys
import threading
from dataclasses import replace

from . import __version__
from .config import ConfigError, ServerConfig
from .provisioning import provision
from .server import FileServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fileserver",
        description="Minimal concurrent HTTP/1.1 file server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m fileserver                          # Use ./config.json
  python -m fileserver --config site.json       # Another config file
  python -m fileserver --port 3000              # Override the port
  python -m fileserver --web-root ./public      # Override the web root
        """
    )

    parser.add_argument(
        "--config", "-c",
        default="config.json",
        help="Path to the JSON config file (default: config.json)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # OVERRIDES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Host to bind to")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on")
    parser.add_argument("--web-root", "-r", help="Directory to serve files from")
    parser.add_argument("--log-dir", help="Directory for daily access logs")
    parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of worker threads (max will be 2x this)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic logging level"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"fileserver {__version__}"
    )

    return parser


def load_config(args: argparse.Namespace) -> ServerConfig:
    """
    Merge config file, environment and CLI flags into one ServerConfig.

    Raises:
        ConfigError: If the file is missing/invalid or a value is bad.
    """
    config = ServerConfig.from_file(args.config).with_env()

    overrides = {}
    for name in ("host", "port", "web_root", "log_dir", "log_level"):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value

    if args.workers is not None:
        overrides["min_workers"] = args.workers
        overrides["max_workers"] = args.workers * 2

    config = replace(config, **overrides)
    config.validate()
    return config


def main(argv=None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    FileServer.setup_logging(config.log_level)

    try:
        provision(config)
    except (ConfigError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    server = FileServer(config)

    # Banner once the port is actually bound
    def announce():
        if server.wait_until_ready(timeout=10.0):
            server.print_startup_banner()

    threading.Thread(target=announce, name="banner", daemon=True).start()

    try:
        server.run()
    except OSError as e:
        print(
            f"Error: cannot start server on port {config.port}: {e}. "
            f"Make sure the port is not in use.",
            file=sys.stderr,
        )
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
