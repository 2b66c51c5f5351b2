"""
Startup provisioning of the directories and pages the server relies on.

Run once before the listener starts:

    logs/                   created if missing
    wwwroot/                must already exist (ConfigError otherwise)
    ├── 404.html            written with a default page if missing
    └── index.html          written with a default page if missing

After this, the request pipeline may assume the 404 page exists.
"""

import logging
from pathlib import Path

from .config import ConfigError, ServerConfig


logger = logging.getLogger(__name__)


DEFAULT_NOT_FOUND_PAGE = (
    "<!DOCTYPE html><html><head><title>404 Not Found</title></head>"
    "<body><h1>Error 404</h1><p>The page you are looking for was not found.</p>"
    "</body></html>"
)

DEFAULT_INDEX_PAGE = (
    "<!DOCTYPE html><html><head><title>Welcome</title></head>"
    "<body><h1>It works!</h1><p>This is the default page of your file server.</p>"
    "</body></html>"
)


def provision(config: ServerConfig) -> None:
    """
    Prepare the filesystem for serving.

    Args:
        config: The server configuration.

    Raises:
        ConfigError: If the web root does not exist.
        OSError: If a directory or default page cannot be created.
    """
    Path(config.log_dir).mkdir(parents=True, exist_ok=True)

    web_root = config.web_root_path
    if not web_root.is_dir():
        raise ConfigError(
            f"Web root '{web_root}' does not exist. "
            f"Create it and place your files there."
        )

    _ensure_page(web_root / config.not_found_file, DEFAULT_NOT_FOUND_PAGE)
    _ensure_page(web_root / config.index_file, DEFAULT_INDEX_PAGE)


def _ensure_page(path: Path, content: str) -> None:
    if path.exists():
        return
    logger.warning(f"'{path.name}' not found in '{path.parent}', creating a default one")
    path.write_text(content, encoding="utf-8")
