"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

This module turns the bytes a client sends into a structured request.

=============================================================================
WHAT WE READ
=============================================================================

    ┌─────────────────────────────────────────────────────────────────┐
    │  REQUEST LINE                                                    │
    │  POST /submit?name=J%C3%BCrgen HTTP/1.1\r\n                     │
    │  └──┘ └──────────────────────┘ └──────┘                         │
    │  Method         Target           Version                         │
    ├─────────────────────────────────────────────────────────────────┤
    │  HEADERS                                                         │
    │  Host: localhost:8080\r\n                                       │
    │  Accept-Encoding: gzip, deflate\r\n   ← Compression negotiation │
    │  Content-Length: 5\r\n                ← Body length (POST only) │
    │  \r\n                                 ← End of headers          │
    ├─────────────────────────────────────────────────────────────────┤
    │  BODY                                                            │
    │  hello                                                           │
    └─────────────────────────────────────────────────────────────────┘

The parser consumes a stream line by line instead of a pre-framed buffer:

1. Read ONE line as the request line; split on single spaces; it needs
   at least 3 tokens.
2. Read header lines until an empty line (or end of stream).
3. For POST with Content-Length > 0, read exactly that many bytes.
4. Split the target on the first "?" into path and raw query.

=============================================================================
MALFORMED INPUT IS NOT AN EXCEPTION
=============================================================================

A garbage request line is routine on the open internet (port scanners,
health checks that connect and hang up). The parser therefore RETURNS a
MalformedRequest value instead of raising. The caller inspects it with
isinstance() and closes the connection quietly.

Genuine I/O failures still raise:

    ShortBodyError        Stream ended before Content-Length bytes arrived
    RequestTooLargeError  A single line exceeded the size limit

=============================================================================
RAW PATH AND QUERY
=============================================================================

Neither the path nor the query string is percent-decoded here. The path
is used as-is for the file lookup and the query is only decoded when the
access log formats it.

=============================================================================
"""

import io
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Union

from .negotiation import accepts_gzip


class ByteReader(Protocol):
    """Anything with file-like readline()/read(): sockets wrappers, BytesIO."""

    def readline(self) -> bytes: ...

    def read(self, size: int) -> bytes: ...


class ShortBodyError(ConnectionError):
    """
    Raised when the stream closes before the declared body arrived.

    This is a connection-level I/O failure, not a parse error: the
    connection is aborted without a response.
    """

    def __init__(self, expected: int, received: int):
        super().__init__(
            f"Incomplete body: expected {expected} bytes, got {received}"
        )
        self.expected = expected
        self.received = received


class RequestTooLargeError(ValueError):
    """Raised when a request line or header line exceeds the size limit."""


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         Request method token, e.g. "GET" or "POST"
        path:           Target before the "?", still percent-encoded.
                        Always begins with "/".
        query:          Target after the first "?", still percent-encoded
                        ("" when absent)
        version:        HTTP version token, e.g. "HTTP/1.1"
        headers:        Header map with LOWERCASE names; on duplicates the
                        last value wins
        body:           Raw body bytes (POST with Content-Length only)
        client_address: (ip, port) of the peer

    =========================================================================
    """

    method: str
    path: str
    query: str = ""
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)

    @property
    def content_length(self) -> int:
        """Content-Length as a non-negative int; 0 if missing or invalid."""
        return parse_content_length(self.headers.get("content-length"))

    @property
    def accepts_gzip(self) -> bool:
        """Check if the client negotiated gzip via Accept-Encoding."""
        return accepts_gzip(self.headers)

    @property
    def client_ip(self) -> str:
        return self.client_address[0]

    def get_header(self, name: str, default: str = "") -> str:
        """
        Get a header value (case-insensitive lookup).

        Example:
            request.get_header("Accept-Encoding")
            # Works because headers are stored lowercase
        """
        return self.headers.get(name.lower(), default)


@dataclass(frozen=True)
class MalformedRequest:
    """
    Outcome of a request that could not be parsed.

    Attributes:
        line: The raw request line as received ("" if the stream closed
              before any line arrived).
        reason: Short human-readable explanation for the log.
    """

    line: str
    reason: str


ParseOutcome = Union[HTTPRequest, MalformedRequest]


def parse_content_length(value: Optional[str]) -> int:
    """
    Parse a Content-Length header value.

    Only plain ASCII digits are accepted. Signs, underscores ("1_0") and
    non-ASCII digits, like any unparsable or missing value, count as 0, so
    a bogus header never makes the server wait for a body.
    """
    value = (value or "").strip()
    if not (value.isascii() and value.isdigit()):
        return 0
    return int(value)


class RequestParser:
    """
    Reads one HTTP request from a byte stream.

    ==========================================================================
    PARSER STAGES
    ==========================================================================

        ByteReader (socket wrapper / BytesIO)
              │
              ▼
        read_request_line() ──► MalformedRequest?  → caller closes quietly
              │
              ▼
        read_headers()      ──► {"content-length": "5", ...}
              │
              ▼
        read_body()         ──► b"hello"  (POST only)  /  ShortBodyError
              │
              ▼
        HTTPRequest

    The stages are public so the connection handler can track its state
    between them. parse() runs all of them in order.

    ==========================================================================
    """

    BODY_METHOD = "POST"

    def __init__(self, max_line_size: int = 64 * 1024):
        """
        Args:
            max_line_size: Longest request or header line accepted, in
                           bytes. Longer lines raise RequestTooLargeError.
        """
        self.max_line_size = max_line_size

    def parse(
        self,
        reader: ByteReader,
        client_address: tuple[str, int] = ("", 0),
    ) -> ParseOutcome:
        """
        Parse one complete request from the stream.

        Args:
            reader: Stream positioned at the start of an HTTP message.
            client_address: Peer (ip, port), copied onto the request.

        Returns:
            HTTPRequest on success, MalformedRequest for a bad request line.

        Raises:
            ShortBodyError: If the body is shorter than Content-Length.
            RequestTooLargeError: If a line exceeds max_line_size.
        """
        outcome = self.read_request_line(reader, client_address)
        if isinstance(outcome, MalformedRequest):
            return outcome

        outcome.headers = self.read_headers(reader)
        outcome.body = self.read_body(reader, outcome)
        return outcome

    def read_request_line(
        self,
        reader: ByteReader,
        client_address: tuple[str, int] = ("", 0),
    ) -> ParseOutcome:
        """
        Read and split the request line.

        Format: METHOD SP TARGET SP VERSION

        Tokens are separated by single spaces only. Tabs are not separators,
        and two spaces in a row produce an empty token, so
        "GET  /a HTTP/1.1" has an empty target (served as "/").

        Returns an HTTPRequest with method, path, query and version filled
        in, or MalformedRequest when fewer than three tokens arrive.
        """
        line = self._read_line(reader)
        if line is None:
            return MalformedRequest(line="", reason="connection closed before request line")

        tokens = line.split(" ")
        if len(tokens) < 3:
            return MalformedRequest(line=line, reason="request line needs 3 tokens")

        method, target, version = tokens[0], tokens[1], tokens[2]
        path, query = split_target(target)

        return HTTPRequest(
            method=method,
            path=path,
            query=query,
            version=version,
            client_address=client_address,
        )

    def read_headers(self, reader: ByteReader) -> Dict[str, str]:
        """
        Read header lines up to the blank separator line.

        Each line is split on its FIRST colon, so values like
        "Host: localhost:8080" keep their own colons. Lines without a
        colon are skipped. End of stream also ends the header block.
        """
        headers: Dict[str, str] = {}

        while True:
            line = self._read_line(reader)
            if not line:
                break  # blank separator or end of stream

            name, sep, value = line.partition(":")
            if not sep:
                continue
            headers[name.strip().lower()] = value.strip()

        return headers

    def read_body(self, reader: ByteReader, request: HTTPRequest) -> bytes:
        """
        Read the request body for POST requests.

        Only POST with a positive Content-Length has a body; every other
        method leaves the stream untouched.

        Raises:
            ShortBodyError: If the stream ends early.
        """
        length = request.content_length
        if request.method != self.BODY_METHOD or length == 0:
            return b""

        chunks = []
        remaining = length
        while remaining > 0:
            chunk = reader.read(remaining)
            if not chunk:
                raise ShortBodyError(length, length - remaining)
            chunks.append(chunk)
            remaining -= len(chunk)

        return b"".join(chunks)

    def _read_line(self, reader: ByteReader) -> Optional[str]:
        """
        Read one line and strip its CRLF or LF terminator.

        Returns None at end of stream, "" for an empty line.
        """
        raw = reader.readline()
        if not raw:
            return None

        if len(raw) > self.max_line_size:
            raise RequestTooLargeError(f"Line too long: {len(raw)} bytes")

        if raw.endswith(b"\n"):
            raw = raw[:-1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]

        return raw.decode("utf-8", errors="replace")


def split_target(target: str) -> tuple[str, str]:
    """
    Split a request target into (path, query) on the first "?".

    The path is forced to start with "/"; neither part is decoded.

        "/search?q=a%20b&x=1" → ("/search", "q=a%20b&x=1")
        "/index.html"         → ("/index.html", "")
    """
    path, _, query = target.partition("?")
    if not path.startswith("/"):
        path = "/" + path
    return path, query


def parse_request(data: bytes, client_address: tuple[str, int] = ("", 0)) -> ParseOutcome:
    """
    Convenience function to parse a complete request held in memory.

    Example:
        request = parse_request(b"GET / HTTP/1.1\\r\\n\\r\\n")
    """
    return RequestParser().parse(io.BytesIO(data), client_address)
