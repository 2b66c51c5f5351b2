"""
Request handlers.

    StaticFileHandler   Maps request paths to files under the web root
"""

from .static import NotFoundPageMissingError, StaticFileHandler

__all__ = [
    "StaticFileHandler",
    "NotFoundPageMissingError",
]
