"""
Integration tests against a running server over real sockets.
"""

import gzip
import re
import socket
import threading
import time
from pathlib import Path

import pytest

from fileserver import FileServer, ServerConfig
from fileserver.core.connection import Connection, ConnectionState

from conftest import INDEX_PAGE, NOT_FOUND_PAGE, InMemoryAccessLog, TestServer, split_response


def wait_for_records(access_log: InMemoryAccessLog, count: int, timeout: float = 5.0):
    """The log record is written after the response, so poll briefly."""
    deadline = time.time() + timeout
    while len(access_log.records) < count and time.time() < deadline:
        time.sleep(0.01)
    return access_log.records


class TestServing:

    def test_get_index(self, test_server):
        raw = test_server.request(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")

        status, headers, body = split_response(raw)
        assert status == "HTTP/1.1 200 OK"
        assert headers == {"Content-Type": "text/html", "Content-Length": str(len(INDEX_PAGE))}
        assert body == INDEX_PAGE

    def test_exact_wire_format(self, test_server, web_root: Path):
        raw = test_server.request(b"GET /logo.png HTTP/1.1\r\n\r\n")

        expected_body = (web_root / "logo.png").read_bytes()
        assert raw == (
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: image/png\r\n"
            + f"Content-Length: {len(expected_body)}\r\n".encode()
            + b"\r\n"
            + expected_body
        )

    def test_gzip_negotiated(self, test_server, web_root: Path):
        raw = test_server.request(
            b"GET /style.css HTTP/1.1\r\nAccept-Encoding: gzip, deflate\r\n\r\n"
        )

        status, headers, body = split_response(raw)
        assert status == "HTTP/1.1 200 OK"
        assert headers["Content-Type"] == "text/css"
        assert headers["Content-Encoding"] == "gzip"
        assert headers["Content-Length"] == str(len(body))
        assert gzip.decompress(body) == (web_root / "style.css").read_bytes()

    def test_not_found(self, test_server):
        raw = test_server.request(b"GET /missing.js HTTP/1.1\r\n\r\n")

        status, headers, body = split_response(raw)
        assert status == "HTTP/1.1 404 Not Found"
        assert headers["Content-Type"] == "text/html"
        assert body == NOT_FOUND_PAGE

    def test_path_traversal_not_found(self, test_server, web_root: Path):
        (web_root.parent / "secret.txt").write_text("top secret")

        raw = test_server.request(b"GET /../secret.txt HTTP/1.1\r\n\r\n")

        status, _, body = split_response(raw)
        assert status == "HTTP/1.1 404 Not Found"
        assert b"top secret" not in body

    def test_root_same_as_index(self, test_server):
        root = test_server.request(b"GET / HTTP/1.1\r\n\r\n")
        index = test_server.request(b"GET /index.html HTTP/1.1\r\n\r\n")

        assert root == index

    def test_repeated_gzip_requests_identical(self, test_server):
        request = b"GET /style.css HTTP/1.1\r\nAccept-Encoding: gzip\r\n\r\n"

        assert test_server.request(request) == test_server.request(request)

    def test_any_method_is_served(self, test_server):
        raw = test_server.request(b"DELETE / HTTP/1.1\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")


class TestAccessLogging:

    def test_get_with_query(self, test_server, access_log):
        test_server.request(b"GET /docs/page.html?q=hello%20world HTTP/1.1\r\n\r\n")

        records = wait_for_records(access_log, 1)
        assert len(records) == 1
        record = records[0]
        assert record.client_ip == "127.0.0.1"
        assert record.method == "GET"
        assert record.file == "docs/page.html"
        assert record.query == "q=hello%20world"
        assert record.to_text().endswith("| Query: q=hello world")

    def test_root_logged_as_index(self, test_server, access_log):
        test_server.request(b"GET / HTTP/1.1\r\n\r\n")

        assert wait_for_records(access_log, 1)[0].file == "index.html"

    def test_post_body(self, test_server, access_log):
        raw = test_server.request(
            b"POST /submit HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
        )

        assert raw.startswith(b"HTTP/1.1 404 Not Found\r\n")
        record = wait_for_records(access_log, 1)[0]
        assert record.method == "POST"
        assert record.body == "hello"

    def test_not_found_is_logged(self, test_server, access_log):
        test_server.request(b"GET /nope HTTP/1.1\r\n\r\n")

        assert wait_for_records(access_log, 1)[0].file == "nope"


class TestAbortedConnections:

    def test_malformed_request_gets_no_response(self, test_server, access_log):
        raw = test_server.request(b"HELLO\r\n\r\n")

        assert raw == b""
        time.sleep(0.2)
        assert access_log.records == []

    def test_immediate_close(self, test_server, access_log):
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0):
            pass

        raw = test_server.request(b"GET / HTTP/1.1\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 200 OK")

    def test_short_body_gets_no_response(self, test_server, access_log):
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as s:
            s.sendall(b"POST /x HTTP/1.1\r\nContent-Length: 100\r\n\r\nabc")
            s.shutdown(socket.SHUT_WR)
            assert s.recv(1024) == b""

        time.sleep(0.2)
        assert access_log.records == []

    def test_server_survives_bad_clients(self, test_server):
        test_server.request(b"\r\n")
        test_server.request(b"GET\r\n")

        raw = test_server.request(b"GET / HTTP/1.1\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 200 OK")


CLIENTS = 20

LOG_LINE = re.compile(
    r"^\d{2}:\d{2}:\d{2} \| IP: 127\.0\.0\.1 \| Method: GET \| File: (file\d+\.txt)$"
)


def make_distinct_files(web_root: Path) -> dict[str, bytes]:
    """One file per client, each with its own content and size."""
    files = {}
    for i in range(CLIENTS):
        name = f"file{i}.txt"
        content = f"client {i}\n".encode() * (i * 37 + 1)
        (web_root / name).write_bytes(content)
        files[name] = content
    return files


def fetch_in_parallel(port: int, names: list[str]) -> dict[str, bytes]:
    """Request every name on its own connection at the same time."""
    results: dict[str, bytes] = {}
    lock = threading.Lock()
    barrier = threading.Barrier(len(names))

    def client(name: str):
        barrier.wait(timeout=5.0)
        with socket.create_connection(("127.0.0.1", port), timeout=5.0) as s:
            s.sendall(f"GET /{name} HTTP/1.1\r\n\r\n".encode())
            chunks = []
            while chunk := s.recv(65536):
                chunks.append(chunk)
        with lock:
            results[name] = b"".join(chunks)

    threads = [threading.Thread(target=client, args=(name,)) for name in names]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10.0)
    return results


class TestConcurrency:

    def test_many_parallel_clients(self, test_server, access_log, web_root: Path):
        """Each client gets exactly its own file back."""
        files = make_distinct_files(web_root)

        results = fetch_in_parallel(test_server.port, list(files))

        assert len(results) == CLIENTS
        for name, content in files.items():
            assert results[name] == (
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: text/plain\r\n"
                + f"Content-Length: {len(content)}\r\n\r\n".encode()
                + content
            )
        records = wait_for_records(access_log, CLIENTS)
        assert sorted(r.file for r in records) == sorted(files)

    def test_parallel_clients_daily_log_file(self, config: ServerConfig, web_root: Path):
        """N concurrent requests leave N intact lines in the daily file."""
        files = make_distinct_files(web_root)
        server = TestServer(FileServer(config))
        server.start()
        try:
            results = fetch_in_parallel(server.port, list(files))
        finally:
            server.stop()

        assert all(raw.startswith(b"HTTP/1.1 200 OK\r\n") for raw in results.values())

        lines = []
        for path in Path(config.log_dir).glob("*.log"):
            lines.extend(path.read_text(encoding="utf-8").split("\n")[:-1])

        assert len(lines) == CLIENTS
        matches = [LOG_LINE.match(line) for line in lines]
        assert all(matches), lines
        assert sorted(m.group(1) for m in matches) == sorted(files)

    def test_idle_clients_beyond_min_workers(self, test_server, config: ServerConfig):
        """More idle connections than min_workers still leave room for a real request."""
        idle = [
            socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0)
            for _ in range(config.min_workers + 1)
        ]
        try:
            time.sleep(0.2)  # let the accept loop hand them to workers

            start = time.time()
            raw = test_server.request(b"GET / HTTP/1.1\r\n\r\n")

            assert raw.startswith(b"HTTP/1.1 200 OK")
            assert time.time() - start < 1.0
        finally:
            for s in idle:
                s.close()

    def test_slow_client_does_not_block_others(self, test_server):
        with socket.create_connection(("127.0.0.1", test_server.port), timeout=5.0) as slow:
            slow.sendall(b"GET / HTTP/1.1\r\n")  # never finishes its headers

            start = time.time()
            raw = test_server.request(b"GET / HTTP/1.1\r\n\r\n")

            assert raw.startswith(b"HTTP/1.1 200 OK")
            assert time.time() - start < 2.0


class TestProcessConnection:
    """Drive a single connection through the pipeline with a socket pair."""

    @pytest.fixture
    def server(self, config: ServerConfig, access_log: InMemoryAccessLog) -> FileServer:
        return FileServer(config, access_log=access_log)

    def run_pipeline(self, server: FileServer, request: bytes) -> tuple[Connection, bytes]:
        server_sock, client_sock = socket.socketpair()
        with client_sock:
            conn = Connection(socket=server_sock, address=("10.1.2.3", 4567), timeout=2.0)
            client_sock.sendall(request)
            client_sock.shutdown(socket.SHUT_WR)

            server.process_connection(conn)

            chunks = []
            while chunk := client_sock.recv(65536):
                chunks.append(chunk)
        return conn, b"".join(chunks)

    def test_serves_and_logs(self, server, access_log):
        conn, raw = self.run_pipeline(server, b"GET / HTTP/1.1\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert conn.state == ConnectionState.CLOSED
        assert access_log.records[0].client_ip == "10.1.2.3"

    def test_missing_404_page_closes_without_response(self, server, web_root, access_log):
        (web_root / "404.html").unlink()

        conn, raw = self.run_pipeline(server, b"GET /missing HTTP/1.1\r\n\r\n")

        assert raw == b""
        assert conn.state == ConnectionState.CLOSED
        assert access_log.records == []

    def test_short_body(self, server, access_log, caplog):
        conn, raw = self.run_pipeline(server, b"POST / HTTP/1.1\r\nContent-Length: 9\r\n\r\nab")

        assert raw == b""
        assert access_log.records == []
        assert "Aborted in state read_body" in caplog.text
        assert conn.state == ConnectionState.CLOSED

    def test_default_access_log_writes_daily_file(self, config: ServerConfig):
        server = FileServer(config)

        self.run_pipeline(server, b"GET /style.css?x=1 HTTP/1.1\r\n\r\n")

        files = list(Path(config.log_dir).glob("*.log"))
        assert len(files) == 1
        line = files[0].read_text(encoding="utf-8").strip()
        assert line.endswith("| IP: 10.1.2.3 | Method: GET | File: style.css | Query: x=1")
