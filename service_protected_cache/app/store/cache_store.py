"""
File-backed store for rendered pages of unlocked resources.
"""

import os
import re
import stat
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from shared.logging import get_logger
from shared.errors import (
    CacheDeleteError,
    CacheDirectoryError,
    CacheWriteError,
    InvalidResourceIdError,
)


DIRECTORY_MODE = 0o700
FILE_MODE = 0o600

ACCESS_DENY_RULES = (
    "<IfModule mod_authz_core.c>\n"
    "    Require all denied\n"
    "</IfModule>\n"
    "<IfModule !mod_authz_core.c>\n"
    "    Order allow,deny\n"
    "    Deny from all\n"
    "</IfModule>\n"
)

_RESOURCE_ID_RE = re.compile(r"^[0-9A-Za-z_-]+$")


@dataclass(frozen=True)
class CacheEntryInfo:
    """Read-only view of one cache file."""

    resource_id: str
    path: Path
    modified_at: datetime
    size_bytes: int


class CacheStore:
    """
    Stores rendered payloads keyed by resource id.

    Every entry lives at ``<cache_dir>/cache-<id>.html``. The directory is
    kept at 0700 and every file at 0600; a sibling access-denial file blocks
    direct HTTP fetches when the directory sits under a web root.

    Filesystem errors never reach the serving path: reads degrade to a miss
    and writes raise ``CacheWriteError`` for the caller to log and skip.
    """

    FILE_PREFIX = "cache-"
    FILE_SUFFIX = ".html"

    def __init__(self, cache_dir: Union[str, Path], access_deny_filename: str = ".htaccess"):
        self.cache_dir = Path(cache_dir)
        self.access_deny_path = self.cache_dir / access_deny_filename
        self.logger = get_logger("protected_cache.store")
        self._entry_re = re.compile(
            rf"^{re.escape(self.FILE_PREFIX)}([0-9A-Za-z_-]+){re.escape(self.FILE_SUFFIX)}$"
        )

    @staticmethod
    def normalize_id(resource_id: Any) -> str:
        """Return the string form of a resource id, rejecting path-unsafe values."""
        if isinstance(resource_id, bool):
            raise InvalidResourceIdError(resource_id)
        normalized = str(resource_id)
        if not _RESOURCE_ID_RE.match(normalized):
            raise InvalidResourceIdError(resource_id)
        return normalized

    def path_for(self, resource_id: Any) -> Path:
        """Deterministic cache file path for a resource."""
        return self.cache_dir / f"{self.FILE_PREFIX}{self.normalize_id(resource_id)}{self.FILE_SUFFIX}"

    def ensure_directory(self) -> None:
        """Create the cache directory and access-denial file, correcting drifted permissions."""
        try:
            self.cache_dir.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
            if stat.S_IMODE(self.cache_dir.stat().st_mode) != DIRECTORY_MODE:
                os.chmod(self.cache_dir, DIRECTORY_MODE)
            self._write_access_deny()
        except OSError as exc:
            self.logger.error(
                "Failed to prepare cache directory",
                path=str(self.cache_dir),
                error=str(exc)
            )
            raise CacheDirectoryError(str(self.cache_dir), details={"error": str(exc)}) from exc

    def _write_access_deny(self) -> None:
        path = self.access_deny_path
        try:
            current = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            current = None
        if current != ACCESS_DENY_RULES:
            path.write_text(ACCESS_DENY_RULES, encoding="utf-8")
        os.chmod(path, FILE_MODE)

    def get(self, resource_id: Any) -> Optional[bytes]:
        """Return the stored payload, or None when missing or unreadable."""
        path = self.path_for(resource_id)
        try:
            with open(path, "rb") as handle:
                return handle.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            self.logger.error("Error reading cache file", path=str(path), error=str(exc))
            return None

    def exists(self, resource_id: Any) -> bool:
        """Check whether an entry exists for the resource."""
        return self.path_for(resource_id).is_file()

    def put(self, resource_id: Any, payload: bytes) -> Path:
        """
        Atomically write a payload with owner-only permissions.

        The payload goes to a temp file in the cache directory first and is
        moved over the final path with ``os.replace``, so readers see either
        the previous entry or the complete new one.

        Returns:
            Path of the written entry

        Raises:
            CacheDirectoryError: directory could not be prepared
            CacheWriteError: payload could not be written
        """
        path = self.path_for(resource_id)
        self.ensure_directory()

        temp_path: Optional[str] = None
        try:
            fd, temp_path = tempfile.mkstemp(
                dir=self.cache_dir,
                prefix=f".{path.stem}-",
                suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(temp_path, FILE_MODE)
            os.replace(temp_path, path)
            temp_path = None
        except OSError as exc:
            self.logger.error("Error writing cache file", path=str(path), error=str(exc))
            raise CacheWriteError(str(path), details={"error": str(exc)}) from exc
        finally:
            if temp_path is not None:
                try:
                    os.unlink(temp_path)
                except OSError:
                    self.logger.warning("Could not remove temp cache file", path=temp_path)

        return path

    def delete(self, resource_id: Any) -> bool:
        """
        Remove the entry for a resource.

        Returns:
            True if removed, False if there was no entry
        """
        path = self.path_for(resource_id)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            self.logger.error("Error deleting cache file", path=str(path), error=str(exc))
            raise CacheDeleteError(str(path), details={"error": str(exc)}) from exc

    def list_all(self) -> Dict[str, Path]:
        """Map resource id to path for every entry matching the naming scheme."""
        result: Dict[str, Path] = {}
        try:
            candidates = list(self.cache_dir.iterdir())
        except FileNotFoundError:
            return result
        except OSError as exc:
            self.logger.error("Error listing cache directory", path=str(self.cache_dir), error=str(exc))
            return result

        for file_path in candidates:
            match = self._entry_re.match(file_path.name)
            if match and file_path.is_file():
                result[match.group(1)] = file_path
        return result

    def entry_info(self, resource_id: Any, path: Optional[Path] = None) -> Optional[CacheEntryInfo]:
        """Stat an entry; None when it does not exist."""
        path = path or self.path_for(resource_id)
        try:
            file_stat = path.stat()
        except OSError:
            return None
        return CacheEntryInfo(
            resource_id=self.normalize_id(resource_id),
            path=path,
            modified_at=datetime.fromtimestamp(file_stat.st_mtime),
            size_bytes=file_stat.st_size,
        )

    def delete_all(self) -> int:
        """Remove every entry, continuing past individual failures."""
        removed = 0
        for resource_id, file_path in self.list_all().items():
            try:
                file_path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                self.logger.error(
                    "Error deleting cache file",
                    resource_id=resource_id,
                    path=str(file_path),
                    error=str(exc)
                )
        return removed

    def __repr__(self) -> str:
        return f"CacheStore(path={self.cache_dir})"


__all__ = ["CacheStore", "CacheEntryInfo", "ACCESS_DENY_RULES"]
