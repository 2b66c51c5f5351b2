"""
Unit tests for the buffered client connection.
"""

import socket

import pytest

from fileserver.core.connection import Connection, ConnectionState
from fileserver.http.request import HTTPRequest, RequestParser


@pytest.fixture
def pair():
    """A connected (server side, client side) socket pair."""
    server_sock, client_sock = socket.socketpair()
    yield server_sock, client_sock
    server_sock.close()
    client_sock.close()


def make_connection(sock: socket.socket, **kwargs) -> Connection:
    return Connection(socket=sock, address=("127.0.0.1", 50000), timeout=2.0, **kwargs)


class TestReading:

    def test_readline_across_chunks(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, buffer_size=4)

        client_sock.sendall(b"GET / HTTP/1.1\r\nHost: a\r\n")

        assert conn.readline() == b"GET / HTTP/1.1\r\n"
        assert conn.readline() == b"Host: a\r\n"

    def test_readline_at_eof(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"partial")
        client_sock.shutdown(socket.SHUT_WR)

        assert conn.readline() == b"partial"
        assert conn.readline() == b""

    def test_read_exact(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, buffer_size=2)

        client_sock.sendall(b"helloworld")

        assert conn.read(5) == b"hello"
        assert conn.read(5) == b"world"

    def test_read_short_at_eof(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"abc")
        client_sock.shutdown(socket.SHUT_WR)

        assert conn.read(10) == b"abc"

    def test_line_limit(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, buffer_size=1024, max_request_size=16)

        client_sock.sendall(b"x" * 100)

        with pytest.raises(ValueError):
            conn.readline()

    def test_timeout(self, pair):
        server_sock, _ = pair
        conn = Connection(socket=server_sock, address=("127.0.0.1", 1), timeout=0.1)

        with pytest.raises(TimeoutError):
            conn.readline()

    def test_parser_reads_from_connection(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, buffer_size=7)

        client_sock.sendall(b"POST /f HTTP/1.1\r\nContent-Length: 4\r\n\r\nbody")

        request = RequestParser().parse(conn, conn.address)

        assert isinstance(request, HTTPRequest)
        assert request.body == b"body"


class TestClosing:

    def test_send_and_close(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        with conn:
            conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n")
            assert conn.state == ConnectionState.WRITE_RESPONSE

        assert conn.state == ConnectionState.CLOSED
        assert client_sock.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"
        assert client_sock.recv(1024) == b""

    def test_close_is_idempotent(self, pair):
        server_sock, _ = pair
        conn = make_connection(server_sock)

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED

    def test_exception_closes_and_propagates(self, pair):
        server_sock, _ = pair
        conn = make_connection(server_sock)

        with pytest.raises(RuntimeError):
            with conn:
                raise RuntimeError("boom")

        assert conn.state == ConnectionState.CLOSED
