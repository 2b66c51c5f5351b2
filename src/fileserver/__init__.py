"""
=============================================================================
FILESERVER - Minimal Concurrent HTTP/1.1 File Server
=============================================================================

Serves the files under one directory over plain HTTP/1.1, one request per
connection, with optional gzip compression and a daily access log.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    fileserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m fileserver)
    ├── server.py            # FileServer: per-connection pipeline
    ├── config.py            # ServerConfig dataclass, config.json loading
    ├── provisioning.py      # Startup creation of logs/, index.html, 404.html
    ├── access_log.py        # LogRecord + daily-file access log
    ├── core/                # Low-level components
    │   ├── socket_server.py # Listening socket and accept loop
    │   ├── connection.py    # Buffered client connection wrapper
    │   └── thread_pool.py   # Bounded worker pool
    ├── http/                # HTTP protocol components
    │   ├── request.py       # Stream request parser
    │   ├── response.py      # ResolvedContent and serialization
    │   ├── negotiation.py   # Accept-Encoding / gzip
    │   ├── status_codes.py  # 200 / 404
    │   └── mime_types.py    # Extension → Content-Type
    └── handlers/
        └── static.py        # Path → file, 404 fallback, compression

=============================================================================
QUICK START
=============================================================================

    from fileserver import FileServer, ServerConfig

    server = FileServer(ServerConfig(port=8080, web_root="wwwroot"))
    server.run()

Or from the shell, with a config.json next to you:

    python -m fileserver

=============================================================================
"""

__version__ = "1.0.0"

from .server import FileServer
from .config import ConfigError, ServerConfig

__all__ = ["FileServer", "ServerConfig", "ConfigError", "__version__"]
