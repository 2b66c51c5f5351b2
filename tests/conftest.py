"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fileserver import FileServer, ServerConfig
from fileserver.access_log import AccessLog, LogRecord


NOT_FOUND_PAGE = b"<html><body><h1>Custom 404</h1></body></html>"
INDEX_PAGE = b"<html><body><h1>Home</h1></body></html>"


class InMemoryAccessLog(AccessLog):
    """Access log sink that keeps records in a list."""

    def __init__(self):
        self.records: list[LogRecord] = []
        self._lock = threading.Lock()

    def write(self, record: LogRecord) -> None:
        with self._lock:
            self.records.append(record)


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /docs/page.html?lang=en&q=hello%20world HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept-Encoding: gzip, deflate\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a small body."""
    return (
        b"POST /submit HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Length: 5\r\n"
        b"\r\n"
        b"hello"
    )


@pytest.fixture
def web_root(tmp_path: Path) -> Path:
    """A web root with an index page, a 404 page and a few assets."""
    root = tmp_path / "wwwroot"
    root.mkdir()
    (root / "index.html").write_bytes(INDEX_PAGE)
    (root / "404.html").write_bytes(NOT_FOUND_PAGE)
    (root / "style.css").write_text("body { color: #333; }\n" * 50)
    (root / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n" + bytes(range(256)))
    (root / "data.unknownext").write_bytes(b"opaque")

    docs = root / "docs"
    docs.mkdir()
    (docs / "page.html").write_text("<p>nested page</p>")

    return root


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def config(web_root: Path, tmp_path: Path, free_port: int) -> ServerConfig:
    """Test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=free_port,
        web_root=str(web_root),
        log_dir=str(tmp_path / "logs"),
        min_workers=2,
        max_workers=8,
        timeout=5.0,
        log_level="WARNING",
    )


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class

    def __init__(self, server: FileServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, raw: bytes) -> bytes:
        """Send raw request bytes and read until the server closes."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=5.0) as s:
            s.sendall(raw)
            chunks = []
            while True:
                chunk = s.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def access_log() -> InMemoryAccessLog:
    return InMemoryAccessLog()


@pytest.fixture
def test_server(config: ServerConfig, access_log: InMemoryAccessLog) -> Generator[TestServer, None, None]:
    """A running server with an in-memory access log."""
    test_srv = TestServer(FileServer(config, access_log=access_log))
    test_srv.start()

    yield test_srv

    test_srv.stop()


def split_response(raw: bytes) -> tuple[str, dict[str, str], bytes]:
    """Split raw response bytes into (status line, headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return lines[0], headers, body
