"""
=============================================================================
FILE SERVER
=============================================================================

The orchestrator that ties the components together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   FileServer    │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────────┐    │
    │    │SocketServer  │    │  ThreadPool  │    │ StaticFileHandler│    │
    │    │ (accept loop)│    │  (workers)   │    │  (file → bytes)  │    │
    │    └──────────────┘    └──────────────┘    └──────────────────┘    │
    │                                                                      │
    │            RequestParser                 DailyFileAccessLog          │
    │           (bytes → request)              (one line per request)      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PER-CONNECTION PIPELINE
=============================================================================

    AWAIT_REQUEST_LINE   read "GET /index.html HTTP/1.1"
          │                  └── MalformedRequest → close silently
    PARSE_HEADERS        read until blank line
          │
    READ_BODY            POST + Content-Length only
          │                  └── ShortBodyError → close, no response
    RESOLVE_FILE         "/" → index.html, else strip "/" and join
    NEGOTIATE            Accept-Encoding contains "gzip"?
    BUILD_RESPONSE       file bytes or 404.html, gzip if negotiated
          │                  └── 404.html missing → close, no response
    WRITE_RESPONSE       one sendall() of head + body
          │                  └── client gone → close
    LOG                  LogRecord → daily access log
          │
    CLOSED               always, via `with conn:`

A failure anywhere aborts only that connection. Nothing propagates to
the accept loop or to other workers.

=============================================================================
"""

import logging
from typing import Optional

from .access_log import AccessLog, DailyFileAccessLog, LogRecord
from .config import ServerConfig
from .core import Connection, ConnectionState, SocketServer, ThreadPool
from .handlers import NotFoundPageMissingError, StaticFileHandler
from .http import MalformedRequest, RequestParser


logger = logging.getLogger(__name__)


class FileServer:
    """
    Concurrent one-request-per-connection HTTP/1.1 file server.

    Usage:
        server = FileServer(ServerConfig(port=8080, web_root="wwwroot"))
        server.run()  # Blocks until Ctrl+C

    Collaborators can be swapped for tests:

        server = FileServer(config, access_log=InMemoryAccessLog())
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        access_log: Optional[AccessLog] = None,
    ):
        """
        Args:
            config: Server configuration. Uses defaults if not provided.
            access_log: Sink for access records. Defaults to daily files
                        under config.log_dir.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.access_log = access_log or DailyFileAccessLog(self.config.log_dir)

        self._parser = RequestParser(max_line_size=self.config.max_request_size)
        self._static = StaticFileHandler(
            self.config.web_root,
            index_file=self.config.index_file,
            not_found_file=self.config.not_found_file,
            confine_to_root=self.config.confine_to_root,
        )

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )

        self._running = False

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port); the real port when configured with 0."""
        return self._socket_server.address

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Raises:
            OSError: If the port cannot be bound.
        """
        self.setup_logging(self.config.log_level)

        self._running = True
        self._thread_pool.start()

        logger.info(
            f"Starting file server on {self.config.host}:{self.config.port}, "
            f"serving '{self.config.web_root}'"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop; run() returns shortly after."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is listening (for tests and embedding)."""
        return self._socket_server.wait_until_ready(timeout)

    @staticmethod
    def setup_logging(log_level: str):
        """
        Configure logging.

        basicConfig() only takes effect the first time (or when nothing
        else configured the root logger), so calling this again is harmless.
        """
        level = getattr(logging, log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("fileserver").setLevel(level)

    def _shutdown(self):
        """Stop accepting, then let in-flight connections finish."""
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    def print_startup_banner(self):
        """Print server startup information."""
        host, port = self.address
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"║  File server listening on port {port:<30}║")
        print(f"║  Serving files from: {self.config.web_root:<40.40}║")
        print(f"║  Access logs in: {self.config.log_dir:<44.44}║")
        print("║  Press Ctrl+C to stop                                        ║")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Hand a freshly accepted connection to the worker pool.

        Called on the accept thread, so it must never block. When the pool's
        queue is full the connection is dropped.
        """
        if not self._thread_pool.submit(self.process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Worker queue full, dropping connection from {conn.client_ip}")
            conn.abort()
            conn.close()

    def process_connection(self, conn: Connection):
        """
        Handle one connection from first byte to close (runs in a worker).

        Every outcome ends with the socket released. Errors are logged here
        and never re-raised.

        Args:
            conn: The client connection.
        """
        with conn:
            try:
                self._serve(conn)
            except NotFoundPageMissingError as e:
                logger.error(f"[{conn.id}] {e}")
                conn.abort()
            except TimeoutError:
                logger.warning(f"[{conn.id}] Timed out in state {conn.state.value} ({conn.client_ip})")
                conn.abort()
            except (ConnectionError, ValueError) as e:
                # ShortBodyError, client resets, oversized lines
                logger.warning(f"[{conn.id}] Aborted in state {conn.state.value} ({conn.client_ip}): {e}")
                conn.abort()
            except OSError as e:
                logger.error(f"[{conn.id}] I/O error in state {conn.state.value} with client {conn.client_ip}: {e}")
                conn.abort()
            except Exception as e:
                logger.exception(f"[{conn.id}] Unexpected error in state {conn.state.value} handling client {conn.client_ip}: {e}")
                conn.abort()

    def _serve(self, conn: Connection):
        """The request/response pipeline; raises on any I/O failure."""
        conn.state = ConnectionState.AWAIT_REQUEST_LINE
        request = self._parser.read_request_line(conn, conn.address)
        if isinstance(request, MalformedRequest):
            conn.abort()
            logger.warning(f"[{conn.id}] Invalid request from {conn.client_ip}: {request.line!r} ({request.reason})")
            return

        conn.state = ConnectionState.PARSE_HEADERS
        request.headers = self._parser.read_headers(conn)

        conn.state = ConnectionState.READ_BODY
        request.body = self._parser.read_body(conn, request)

        conn.state = ConnectionState.RESOLVE_FILE
        requested_file = self._static.requested_file(request.path)

        conn.state = ConnectionState.NEGOTIATE
        gzip = request.accepts_gzip

        conn.state = ConnectionState.BUILD_RESPONSE
        content = self._static.handle(request, gzip=gzip)

        conn.send_response(content.to_bytes())

        conn.state = ConnectionState.LOG
        logger.debug(
            f"[{conn.id}] {request.method} {request.path} -> {content.status} "
            f"({content.content_length} bytes, {content.encoding.value})"
        )
        self.access_log.write(LogRecord(
            client_ip=conn.client_ip,
            method=request.method,
            file=requested_file,
            query=request.query,
            body=request.body.decode("utf-8", errors="replace"),
        ))
