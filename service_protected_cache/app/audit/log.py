"""
Append-only audit log of coordinator and admin decisions.
"""

import os
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Deque, List, Optional, Union

from shared.logging import get_logger


FILE_MODE = 0o600
DIRECTORY_MODE = 0o700
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class LogEntry:
    """One audit line."""

    timestamp: datetime
    message: str

    def format(self) -> str:
        return f"[{self.timestamp.strftime(TIMESTAMP_FORMAT)}] {self.message}"


class AuditLog:
    """
    Durable, append-only log stored next to the cache entries.

    Each append is mirrored to the structured diagnostic logger and kept in
    a bounded in-memory buffer. The file is recreated when missing and
    chmod'ed back to 0600 after every write. Append never raises; a log
    that cannot be written must not break the request being served.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        recent_size: int = 200,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.path = Path(path)
        self.logger = get_logger("protected_cache.audit")
        self._clock = clock or datetime.now
        self._recent: Deque[LogEntry] = deque(maxlen=max(1, recent_size))
        self._lock = threading.Lock()

    @property
    def recent(self) -> List[LogEntry]:
        """Entries appended by this process, oldest first."""
        with self._lock:
            return list(self._recent)

    def init_file(self) -> None:
        """Touch the log file and lock its permissions down."""
        self.path.parent.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
        self.path.touch(mode=FILE_MODE, exist_ok=True)
        os.chmod(self.path, FILE_MODE)

    def append(self, message: str) -> LogEntry:
        """Record a message in memory, in the diagnostic log, and on disk."""
        message = " ".join(str(message).splitlines())
        entry = LogEntry(timestamp=self._clock(), message=message)

        self.logger.info("Cache audit", message=message)

        with self._lock:
            self._recent.append(entry)
            try:
                if not self.path.exists():
                    self.init_file()
                with open(self.path, "a", encoding="utf-8") as handle:
                    handle.write(entry.format() + "\n")
                os.chmod(self.path, FILE_MODE)
            except OSError as exc:
                self.logger.error(
                    "Failed to append audit log",
                    path=str(self.path),
                    error=str(exc)
                )

        return entry

    def read_all_newest_first(self) -> List[str]:
        """Return every non-empty line of the log file, newest first."""
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                lines = [line for line in handle.read().splitlines() if line.strip()]
        except FileNotFoundError:
            return []
        except OSError as exc:
            self.logger.error("Failed to read audit log", path=str(self.path), error=str(exc))
            return []
        lines.reverse()
        return lines
