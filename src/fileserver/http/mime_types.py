"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps file extensions to the Content-Type sent with each response.

MIME types tell the browser how to interpret the response body. They
follow the format type/subtype:

    ┌────────────────────────────────────────────────────────────────────┐
    │                    SUPPORTED MIME TYPES                            │
    ├────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  TEXT / DOCUMENTS:                                                 │
    │  .html → text/html            .txt  → text/plain                   │
    │  .css  → text/css             .json → application/json             │
    │  .js   → application/javascript                                    │
    │  .xml  → application/xml                                           │
    │                                                                     │
    │  IMAGES:                                                            │
    │  .png  → image/png            .gif  → image/gif                    │
    │  .jpg  → image/jpeg           .svg  → image/svg+xml                │
    │  .jpeg → image/jpeg           .ico  → image/x-icon                 │
    │                                                                     │
    │  BINARY:                                                            │
    │  .pdf  → application/pdf      .zip  → application/zip              │
    │  (anything else) → application/octet-stream                        │
    │                                                                     │
    └────────────────────────────────────────────────────────────────────┘

The table is deliberately small and fixed. No charset parameter is
appended: the server sends files as raw bytes and never transcodes them.

=============================================================================
"""

from pathlib import Path
from types import MappingProxyType
from typing import Mapping


DEFAULT_MIME_TYPE = "application/octet-stream"

# Read-only view: built once at import, shared by every worker thread.
MIME_TYPES: Mapping[str, str] = MappingProxyType({
    # Documents
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",

    # Binary
    ".pdf": "application/pdf",
    ".zip": "application/zip",
})


def get_content_type(path: str | Path) -> str:
    """
    Get the Content-Type for a file based on its extension.

    The lookup is case-insensitive and never fails: a missing or unknown
    extension falls back to application/octet-stream.

    Args:
        path: File path or name with extension.

    Returns:
        The MIME type string.

    Examples:
        >>> get_content_type("index.html")
        'text/html'

        >>> get_content_type("img/LOGO.PNG")
        'image/png'

        >>> get_content_type("archive.tar.unknown")
        'application/octet-stream'
    """
    return MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)
