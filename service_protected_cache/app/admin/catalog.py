"""
Catalog of gated resources consumed by the admin operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union
import json
import threading

from shared.logging import get_logger


@dataclass(frozen=True)
class GatedResource:
    """A resource that has an access secret."""

    resource_id: str
    title: str = ""
    kind: str = "page"
    status: str = "publish"
    url: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GatedResource":
        resource_id = payload.get("id", payload.get("resource_id"))
        if resource_id is None:
            raise ValueError("resource entry without an id")
        return cls(
            resource_id=str(resource_id),
            title=str(payload.get("title", "")),
            kind=str(payload.get("kind", "page")),
            status=str(payload.get("status", "publish")),
            url=payload.get("url"),
            raw=payload,
        )


class ResourceCatalog(Protocol):
    """Host query listing every gated resource across all kinds and statuses."""

    async def list_gated_resources(self) -> List[GatedResource]:
        ...


class StaticResourceCatalog:
    """In-memory catalog, mostly for embedding and tests."""

    def __init__(self, resources: Iterable[GatedResource] = ()):
        self._resources = list(resources)

    async def list_gated_resources(self) -> List[GatedResource]:
        return list(self._resources)


class FileResourceCatalog:
    """
    Loads gated resources from a JSON file.

    The file holds a list of ``{"id", "title", "kind", "status", "url"}``
    objects, or an object with such a list under ``"resources"``. A missing
    or malformed file yields an empty catalog so admin pages still render.
    """

    def __init__(self, path: Optional[Union[str, Path]]):
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self.logger = get_logger("protected_cache.catalog")
        self._resources = self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def refresh(self) -> None:
        """Reload the catalog from disk."""
        with self._lock:
            self._resources = self._load()

    async def list_gated_resources(self) -> List[GatedResource]:
        self.refresh()
        return list(self._resources)

    def _load(self) -> List[GatedResource]:
        if self._path is None or not self._path.exists():
            return []

        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (ValueError, OSError) as exc:
            self.logger.error("Failed to parse resource catalog", path=str(self._path), error=str(exc))
            return []

        entries = payload.get("resources", []) if isinstance(payload, dict) else payload
        resources: List[GatedResource] = []
        for entry in entries or []:
            try:
                resources.append(GatedResource.from_dict(entry))
            except (AttributeError, ValueError) as exc:
                self.logger.warning("Skipping invalid catalog entry", entry=repr(entry), error=str(exc))
        return resources
