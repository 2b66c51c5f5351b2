"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The file server only ever answers with two status codes:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  200   │ OK         - The requested file exists and is returned    │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  404   │ Not Found  - The file is missing; 404.html is returned    │
    └────────┴───────────────────────────────────────────────────────────┘

Malformed requests and I/O failures never produce a status code at all:
the connection is simply closed. That keeps the wire contract simple -
a client either receives a complete, valid response or an abrupt close.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes emitted by the server.

    IntEnum lets the members behave like plain integers:

        HTTPStatus.OK == 200          → True
        f"{HTTPStatus.NOT_FOUND}"     → "404"
    """

    OK = 200
    NOT_FOUND = 404

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES[self]

    def __str__(self) -> str:
        return str(int(self))


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NOT_FOUND: "Not Found",
}
