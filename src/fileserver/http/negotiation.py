"""
Content negotiation for response compression.

The client advertises the encodings it understands:

    Accept-Encoding: gzip, deflate, br

If "gzip" appears anywhere in that header the response body is gzipped
and the server answers with:

    Content-Encoding: gzip

Quality values (``gzip;q=0``) are not interpreted: a plain substring match
decides. Compression runs at level 1, trading ratio for speed, on the
fully buffered body.
"""

import gzip
from typing import Mapping


GZIP_LEVEL = 1  # fastest


def accepts_gzip(headers: Mapping[str, str]) -> bool:
    """
    Check whether the client accepts gzip-encoded responses.

    Args:
        headers: Parsed request headers with lower-cased names.

    Returns:
        True if the Accept-Encoding header mentions gzip (any case).
    """
    return "gzip" in headers.get("accept-encoding", "").lower()


def gzip_encode(body: bytes) -> bytes:
    # mtime=0 keeps the output byte-identical for identical input
    return gzip.compress(body, compresslevel=GZIP_LEVEL, mtime=0)
