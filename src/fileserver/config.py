"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunable settings live in one dataclass. The configuration is built
once at startup and never mutated afterwards, so every worker thread can
read it without locking.

=============================================================================
WHERE SETTINGS COME FROM
=============================================================================

    config.json            {"port": 8080, "webRoot": "wwwroot"}
         │
         ▼
    environment            FILESERVER_PORT=9000 ...
         │
         ▼
    command line           python -m fileserver --port 9000
         │
         ▼
    ServerConfig(...)  →  validate()  →  FileServer(config)

Later sources override earlier ones. The JSON file accepts both the
camelCase keys ("webRoot", "logDir") and
the snake_case field names ("web_root", "log_dir").

=============================================================================
"""

import json
import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional


class ConfigError(Exception):
    """
    Raised when the configuration cannot be loaded or is invalid.

    Startup aborts on this error; it never occurs while serving.
    """


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CONTENT
    - web_root, index_file, not_found_file, confine_to_root

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout, max_request_size

    THREADING SETTINGS
    - min_workers, max_workers, queue_size

    LOGGING
    - log_dir, log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    web_root: str = "wwwroot"
    """Directory beneath which all servable files live."""

    index_file: str = "index.html"
    """File served for the "/" path."""

    not_found_file: str = "404.html"
    """Page (inside web_root) returned with status 404."""

    confine_to_root: bool = True
    """
    Answer 404 for paths that resolve outside web_root ("/../secret").
    False restores the plain, unguarded join.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0" - All network interfaces
    - "127.0.0.1" - Localhost only
    """

    port: int = 8080
    """The port number to listen on."""

    backlog: int = 128
    """Maximum number of queued connections before new ones are refused."""

    buffer_size: int = 8192
    """Size of each socket recv() in bytes."""

    timeout: Optional[float] = 30.0
    """
    Per-connection socket timeout in seconds.
    A client that stalls mid-request is dropped after this long.
    None = block forever.
    """

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Maximum bytes buffered for a single request line or header line."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads created at startup."""

    max_workers: int = 32
    """Upper bound on worker threads under load."""

    queue_size: int = 256
    """
    Accepted connections waiting for a worker.
    When full, new connections are closed immediately.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_dir: str = "logs"
    """Directory for the daily access-log files."""

    log_level: str = "INFO"
    """Diagnostic logging level (DEBUG, INFO, WARNING, ERROR)."""

    @property
    def web_root_path(self) -> Path:
        return Path(self.web_root)

    @classmethod
    def from_file(cls, path: str | Path = "config.json") -> "ServerConfig":
        """
        Load configuration from a JSON file.

        =====================================================================
        FILE FORMAT
        =====================================================================

            {
                "port": 8080,
                "webRoot": "wwwroot"
            }

        Only "port" and "webRoot" are expected; any other ServerConfig
        field may be given too, in camelCase or snake_case.

        =====================================================================

        Raises:
            ConfigError: If the file is missing, not valid JSON, or holds
                         unknown keys or values of the wrong type.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}") from None
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from None

        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerConfig":
        """Build a config from a mapping with camelCase or snake_case keys."""
        known = {f.name: f for f in fields(cls)}
        values = {}

        for key, value in data.items():
            name = _snake_case(key)
            if name not in known:
                raise ConfigError(f"Unknown config key: {key}")
            values[name] = _coerce(name, value, known[name].type)

        return cls(**values)

    def with_env(self, environ: Optional[dict[str, str]] = None) -> "ServerConfig":
        """
        Return a copy with environment variable overrides applied.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        FILESERVER_HOST       Bind address
        FILESERVER_PORT       Listen port
        FILESERVER_WEB_ROOT   Web root directory
        FILESERVER_LOG_DIR    Access-log directory
        FILESERVER_LOG_LEVEL  Logging level

        =====================================================================
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}

        for name in ("host", "port", "web_root", "log_dir", "log_level"):
            value = environ.get(f"FILESERVER_{name.upper()}")
            if value is not None:
                overrides[name] = _coerce(name, value, int if name == "port" else str)

        return replace(self, **overrides)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Create configuration from defaults plus environment variables."""
        return cls().with_env()

    def validate(self) -> None:
        """
        Validate configuration values.

        Fail fast: errors surface at startup, not on the first request.

        Raises:
            ConfigError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not self.web_root:
            raise ConfigError("web_root must not be empty")

        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ConfigError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Invalid log_level: {self.log_level}")


def _snake_case(key: str) -> str:
    # webRoot → web_root, maxWorkers → max_workers
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _coerce(name: str, value: Any, field_type: Any) -> Any:
    """Convert a raw JSON/env value to the field's declared type."""
    type_name = field_type.__name__ if isinstance(field_type, type) else str(field_type)
    try:
        if type_name == "bool":
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if type_name == "int":
            if isinstance(value, bool):
                raise TypeError("bool is not an int")
            return int(value)
        if "float" in type_name:
            return None if value is None else float(value)
        if type_name == "str":
            if not isinstance(value, (str, int, float)):
                raise TypeError(f"expected a string, got {type(value).__name__}")
            return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r} ({e})") from None
    return value
