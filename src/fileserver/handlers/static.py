"""
=============================================================================
STATIC FILE RESPONDER
=============================================================================

Maps a request path to a file under the web root and builds the response.

=============================================================================
PATH MAPPING
=============================================================================

    Request path            File on disk
    ────────────            ────────────
    /                   →   {web_root}/index.html
    /css/site.css       →   {web_root}/css/site.css
    /missing.html       →   (not a file) → {web_root}/404.html, status 404

The path is NOT percent-decoded: "/a%20b.txt" looks for a file literally
named "a%20b.txt".

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

A naive join lets a request escape the web root:

    GET /../../etc/passwd HTTP/1.1

    web_root / "../../etc/passwd"  →  /etc/passwd   ← !!!

With confine_to_root enabled (the default) we:
1. Resolve the full path (following .. and symlinks)
2. Check that the resolved path is still inside web_root
3. Treat anything outside as "not found" (404)

The 404 answer is intentional: it reveals nothing about whether the
escaped path exists.

=============================================================================
COMPRESSION
=============================================================================

When the client accepts gzip, the WHOLE body (the file or the 404 page)
is compressed in memory before Content-Length is computed. Files are
read in one shot; there is no streaming or range support.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Optional

from ..http.mime_types import get_content_type
from ..http.negotiation import gzip_encode
from ..http.request import HTTPRequest
from ..http.response import ContentEncoding, ResolvedContent
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class NotFoundPageMissingError(FileNotFoundError):
    """
    Raised when the 404 fallback page is needed but does not exist.

    Startup provisioning normally creates it, so its absence at serve time
    is fatal for the current request only: the connection is closed
    without a response.
    """


class StaticFileHandler:
    """
    Serves files from a single web root directory.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      handle() Flow                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   requested_file()   "/" → "index.html", strip leading "/"          │
    │         │                                                            │
    │   resolve()          join with web_root, traversal check             │
    │         │                                                            │
    │         ├── regular file → 200, MIME type from extension            │
    │         └── otherwise    → 404, text/html, 404.html contents        │
    │         │                                                            │
    │   encode()           gzip if negotiated                              │
    │         │                                                            │
    │   ResolvedContent                                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        web_root: str | Path,
        index_file: str = "index.html",
        not_found_file: str = "404.html",
        confine_to_root: bool = True,
    ):
        """
        Initialize the handler.

        Args:
            web_root: Directory holding the servable files.
            index_file: File served for "/".
            not_found_file: Page served (with status 404) for missing files.
            confine_to_root: Reject paths that resolve outside web_root.
        """
        self.web_root = Path(web_root)
        self.index_file = index_file
        self.not_found_file = not_found_file
        self.confine_to_root = confine_to_root

        # Resolved once; used as the prefix for the containment check
        self._resolved_root = self.web_root.resolve()

    def requested_file(self, path: str) -> str:
        """
        Get the web-root-relative file name for a request path.

        This is also the name recorded in the access log.

            "/"            → "index.html"
            "/docs/a.txt"  → "docs/a.txt"
        """
        if path == "/":
            return self.index_file
        return path.lstrip("/")

    def resolve(self, path: str) -> Optional[Path]:
        """
        Find the file a request path refers to.

        Args:
            path: Raw request path (always starts with "/").

        Returns:
            Path of an existing regular file, or None if there is no such
            file (or it lies outside the web root).
        """
        candidate = self.web_root / self.requested_file(path)

        try:
            if self.confine_to_root:
                resolved = candidate.resolve()
                try:
                    resolved.relative_to(self._resolved_root)
                except ValueError:
                    logger.warning(f"Path traversal attempt: {path}")
                    return None

            if candidate.is_file():
                return candidate
        except (OSError, ValueError) as e:
            # Unrepresentable paths (embedded NUL, name too long) are just missing
            logger.debug(f"Cannot resolve {path!r}: {e}")

        return None

    def handle(self, request: HTTPRequest, gzip: bool = False) -> ResolvedContent:
        """
        Build the response content for a request.

        Args:
            request: The parsed request; only its path is used.
            gzip: Whether the client negotiated gzip.

        Returns:
            Immutable ResolvedContent ready to serialize.

        Raises:
            NotFoundPageMissingError: If the fallback 404 page is absent.
            OSError: If reading the file fails.
        """
        file_path = self.resolve(request.path)

        if file_path is not None:
            status = HTTPStatus.OK
            content_type = get_content_type(self.requested_file(request.path))
            body = file_path.read_bytes()
        else:
            status = HTTPStatus.NOT_FOUND
            content_type = "text/html"
            body = self.read_not_found_page()

        return self.encode(status, content_type, body, gzip)

    def read_not_found_page(self) -> bytes:
        page = self.web_root / self.not_found_file
        try:
            return page.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundPageMissingError(f"Fallback page missing: {page}") from e

    @staticmethod
    def encode(
        status: HTTPStatus,
        content_type: str,
        body: bytes,
        gzip: bool,
    ) -> ResolvedContent:
        """Apply the negotiated encoding to a fully buffered body."""
        if gzip:
            return ResolvedContent(
                status=status,
                content_type=content_type,
                body=gzip_encode(body),
                encoding=ContentEncoding.GZIP,
            )
        return ResolvedContent(status=status, content_type=content_type, body=body)
