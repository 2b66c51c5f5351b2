"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps an accepted client socket with the small, file-like
reading API the request parser needs, plus lifecycle tracking.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries. A request sent as

    POST /submit HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello

might arrive as ANY split of those bytes:

    recv() → "POST /sub"
    recv() → "mit HTTP/1.1\r\nContent-Len"
    recv() → "gth: 5\r\n\r\nhello"

So we buffer received bytes and hand them out by protocol delimiter:

    readline()   bytes up to and including the next "\n"
    read(n)      up to n bytes (fewer only at end of stream)

=============================================================================
ONE REQUEST, THEN CLOSE
=============================================================================

Each connection carries exactly one request and one response. There is
no keep-alive: after the response (or on any failure) the socket is shut
down and closed. The `with conn:` block guarantees that close happens on
every path, including exceptions.

=============================================================================
CONNECTION STATES
=============================================================================

    AWAIT_REQUEST_LINE → PARSE_HEADERS → READ_BODY → RESOLVE_FILE
        → NEGOTIATE → BUILD_RESPONSE → WRITE_RESPONSE → LOG → CLOSED

    Any state ──(malformed input / I/O failure)──► ABORTED → CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """
    Per-connection pipeline states.

    Tracked for logging and debugging: when a connection fails, its state
    tells which stage of the pipeline it was in.
    """
    NEW = "new"                                # Just accepted
    AWAIT_REQUEST_LINE = "await_request_line"  # Reading the first line
    PARSE_HEADERS = "parse_headers"            # Reading header lines
    READ_BODY = "read_body"                    # Reading a POST body
    RESOLVE_FILE = "resolve_file"              # Looking up the file
    NEGOTIATE = "negotiate"                    # Checking Accept-Encoding
    BUILD_RESPONSE = "build_response"          # Reading file, compressing
    WRITE_RESPONSE = "write_response"          # Sending bytes
    LOG = "log"                                # Writing the access record
    ABORTED = "aborted"                        # Failed; closing without response
    CLOSED = "closed"                          # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. BUFFERED READING                                                 │
    │     └── readline() / read(n) on top of recv() chunks                 │
    │     └── _buffer holds received bytes not yet consumed                │
    │                                                                      │
    │  2. TIMEOUT                                                          │
    │     └── A stalled client is dropped after `timeout` seconds          │
    │                                                                      │
    │  3. STATE TRACKING                                                   │
    │     └── Which pipeline stage the connection is in                    │
    │                                                                      │
    │  4. GRACEFUL CLOSE                                                   │
    │     └── shutdown(SHUT_WR), drain, close                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier (for logging).
        state: Current pipeline state.
        created_at: Timestamp when the connection was accepted.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192           # How much to read at once
    timeout: float | None = 30.0      # Per-operation socket timeout
    max_request_size: int = 10 * 1024 * 1024  # Longest single line buffered

    _buffer: bytes = field(default=b"", repr=False)
    _eof: bool = field(default=False, repr=False)

    def __post_init__(self):
        """Configure socket after initialization."""
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def readline(self) -> bytes:
        """
        Read one line, including its "\\n" terminator.

        Returns:
            The line bytes; a final unterminated fragment at end of stream;
            or b"" when the stream is exhausted.

        Raises:
            ValueError: If no line terminator arrives within
                        max_request_size bytes.
            TimeoutError: If the client stalls longer than `timeout`.
            OSError: On socket failure.
        """
        while True:
            newline = self._buffer.find(b"\n")
            if newline != -1:
                line = self._buffer[:newline + 1]
                self._buffer = self._buffer[newline + 1:]
                return line

            if len(self._buffer) > self.max_request_size:
                raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            if not self._fill():
                line, self._buffer = self._buffer, b""
                return line

    def read(self, size: int) -> bytes:
        """
        Read up to `size` bytes.

        Blocks until `size` bytes are buffered or the stream ends; only at
        end of stream can fewer bytes be returned.
        """
        while len(self._buffer) < size and self._fill():
            pass

        data = self._buffer[:size]
        self._buffer = self._buffer[size:]
        return data

    def _fill(self) -> bool:
        """
        Receive one chunk into the buffer.

        Returns:
            False once the peer has closed its side.
        """
        if self._eof:
            return False

        chunk = self.socket.recv(self.buffer_size)
        if not chunk:
            self._eof = True
            return False

        self._buffer += chunk
        return True

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> None:
        """
        Send a complete, fully buffered response.

        Uses sendall() to ensure ALL data is sent. Regular send() might
        only send part of the data if the buffer is full.

        Raises:
            OSError: If the client disconnected (BrokenPipeError,
                     ConnectionResetError) or the send timed out.
        """
        self.state = ConnectionState.WRITE_RESPONSE
        self.socket.sendall(data)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def abort(self) -> None:
        """Mark the connection as failed; close() follows."""
        self.state = ConnectionState.ABORTED

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): Tell the client we're done sending (FIN)
        2. Drain remaining data the client may still send
        3. close(): Release the socket file descriptor

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)  # Quick timeout
            while self.socket.recv(1024):
                pass  # Discard any remaining data
        except OSError:
            pass  # Includes socket.timeout

        try:
            self.socket.close()
        except OSError:
            pass

        logger.debug(f"[{self.id}] Connection closed ({self.state.value}) after {self.age:.3f}s")
        self.state = ConnectionState.CLOSED

    def __enter__(self):
        """
        Context manager entry.

            with conn:
                request = parser.parse(conn)
                conn.send_response(response)
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensure connection is closed."""
        if exc_type is not None:
            self.abort()
        self.close()
        return False  # Don't suppress exceptions
