"""
=============================================================================
HTTP PROTOCOL COMPONENTS
=============================================================================

    request.py       bytes stream  → HTTPRequest | MalformedRequest
    negotiation.py   headers       → accepts gzip?  (+ gzip encoder)
    mime_types.py    file name     → Content-Type
    response.py      ResolvedContent → b"HTTP/1.1 200 OK\\r\\n..."
    status_codes.py  200 OK / 404 Not Found

=============================================================================
"""

from .request import (
    HTTPRequest,
    MalformedRequest,
    ParseOutcome,
    RequestParser,
    RequestTooLargeError,
    ShortBodyError,
    parse_request,
)
from .response import ContentEncoding, ResolvedContent
from .status_codes import HTTPStatus
from .mime_types import get_content_type
from .negotiation import accepts_gzip, gzip_encode

__all__ = [
    # Request parsing
    "HTTPRequest",
    "MalformedRequest",
    "ParseOutcome",
    "RequestParser",
    "RequestTooLargeError",
    "ShortBodyError",
    "parse_request",

    # Responses
    "ContentEncoding",
    "ResolvedContent",
    "HTTPStatus",

    # Content type and encoding
    "get_content_type",
    "accepts_gzip",
    "gzip_encode",
]
