"""
=============================================================================
ACCESS LOG
=============================================================================

One line per handled request, appended to a file named after the day:

    logs/
    ├── 2026-10-18.log
    └── 2026-10-19.log
            │
            └── 14:03:27 | IP: 127.0.0.1 | Method: GET | File: index.html
                14:03:29 | IP: 127.0.0.1 | Method: GET | File: search.html | Query: q=hello world
                14:03:31 | IP: 10.0.0.7 | Method: POST | File: submit | Body: hello

The Query part is percent-decoded for readability and is omitted when
empty, as is the Body part.

=============================================================================
CONCURRENT WRITERS
=============================================================================

Many worker threads finish requests at the same time. Each record is
formatted first, then written with ONE write() call while holding a lock:

    Worker 1 ──► format ──┐
                          ├──► [lock] open(append) → write(line) [unlock]
    Worker 2 ──► format ──┘

Lines from different requests therefore never interleave.

=============================================================================
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from urllib.parse import unquote


# ═══════════════════════════════════════════════════════════════════════════
# LOGGER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════
# The daily files are the access log of record. Each line is also echoed
# to this namespaced logger at DEBUG so it shows up on the console with
#   logging.getLogger("fileserver.access").setLevel(logging.DEBUG)
# ═══════════════════════════════════════════════════════════════════════════
access_logger = logging.getLogger("fileserver.access")
logger = logging.getLogger(__name__)

# CR and LF inside a field would start a new, forged record
_LINE_BREAKS = str.maketrans({"\r": "\\r", "\n": "\\n"})


@dataclass(frozen=True)
class LogRecord:
    """
    Structured log entry for one handled request.

    Attributes:
        client_ip: Peer IP address.
        method: Request method token.
        file: Web-root-relative file that was requested ("index.html" for "/").
        query: RAW query string; decoded only when formatted.
        body: Request body as text ("" when there was none).
        timestamp: When the record was created.
    """

    client_ip: str
    method: str
    file: str
    query: str = ""
    body: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def decoded_query(self) -> str:
        """The query string with %XX escapes decoded ("+" is kept as-is)."""
        return unquote(self.query)

    def to_text(self) -> str:
        """
        Format as a single access-log line.

        Format: HH:MM:SS | IP: ip | Method: m | File: f[ | Query: q][ | Body: b]

        Line breaks in the decoded query or the body are written as the
        two characters "\\r" and "\\n", so a record is always one line.
        """
        line = (
            f"{self.timestamp:%H:%M:%S} | IP: {self.client_ip} "
            f"| Method: {self.method} | File: {self.file}"
        )
        if self.query:
            line += f" | Query: {self.decoded_query.translate(_LINE_BREAKS)}"
        if self.body:
            line += f" | Body: {self.body.translate(_LINE_BREAKS)}"
        return line


class AccessLog(ABC):
    """
    Sink for access-log records.

    Implementations must be safe to call from many threads at once.
    """

    @abstractmethod
    def write(self, record: LogRecord) -> None:
        """Persist a single record."""
        pass


class DailyFileAccessLog(AccessLog):
    """
    Appends records to {log_dir}/YYYY-MM-DD.log, one file per day.

    The date is taken from each record's timestamp, so a request handled
    just after midnight lands in the new day's file.
    """

    def __init__(self, log_dir: str | Path = "logs", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.encoding = encoding
        self._lock = threading.Lock()

    def path_for(self, record: LogRecord) -> Path:
        return self.log_dir / f"{record.timestamp:%Y-%m-%d}.log"

    def write(self, record: LogRecord) -> None:
        """
        Append one record.

        Failures to write the log are reported but never propagate: losing
        a log line must not break the response that was already sent.
        """
        line = record.to_text() + "\n"
        path = self.path_for(record)

        with self._lock:
            try:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding=self.encoding, errors="replace") as f:
                    f.write(line)
            except OSError as e:
                logger.error(f"Failed to write access log {path}: {e}")
                return

        access_logger.debug(line.rstrip("\n"))
