"""
=============================================================================
HTTP RESPONSE SERIALIZATION
=============================================================================

Every response the server writes has the same fixed shape:

    HTTP/1.1 200 OK\r\n                 ← Status line
    Content-Type: text/html\r\n
    Content-Encoding: gzip\r\n          ← Only when the body is gzipped
    Content-Length: 1234\r\n            ← Length of the bytes that follow
    \r\n                                ← Empty line (separator)
    <body bytes>

There is no Date, Server or Connection header: each connection carries
exactly one response and is then closed, so nothing else is needed.

=============================================================================
BUFFERED, ALL-OR-NOTHING
=============================================================================

The head and the body are serialized into ONE bytes object and written
with a single sendall(). A client therefore never sees headers without
their body: it gets the whole response or an aborted connection.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum

from .status_codes import HTTPStatus


class ContentEncoding(Enum):
    """How the response body is encoded on the wire."""

    IDENTITY = "identity"   # Raw file bytes
    GZIP = "gzip"           # gzip-compressed file bytes


@dataclass(frozen=True)
class ResolvedContent:
    """
    The complete, immutable result of handling one request.

    Built once by the static file handler, then serialized with to_bytes().

    Attributes:
        status: 200 for a served file, 404 for the fallback page.
        content_type: MIME type of the (uncompressed) content.
        body: Bytes to send, ALREADY compressed when encoding is GZIP.
        encoding: Whether body is raw or gzipped.
    """

    status: HTTPStatus
    content_type: str
    body: bytes
    encoding: ContentEncoding = ContentEncoding.IDENTITY
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {self.status} {self.status.phrase}"

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def headers(self) -> dict[str, str]:
        """
        Response headers in wire order.

        Content-Encoding is only present for gzipped bodies, and
        Content-Length always counts the bytes actually sent.
        """
        headers = {"Content-Type": self.content_type}
        if self.encoding is ContentEncoding.GZIP:
            headers["Content-Encoding"] = "gzip"
        headers["Content-Length"] = str(self.content_length)
        return headers

    def head(self) -> bytes:
        """Serialize the status line and headers, including the blank line."""
        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in self.headers.items())
        return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

    def to_bytes(self) -> bytes:
        """
        Serialize the complete response.

        Returns:
            Head and body as one buffer, ready for socket.sendall().
        """
        return self.head() + self.body
