"""
Value types shared by the coordinator, the classifier, and the middleware.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Decision(str, Enum):
    """Terminal state of one request in the coordinator."""
    PASSTHROUGH = "passthrough"
    LOCKED = "locked"
    PRIVILEGED_BYPASS = "privileged_bypass"
    SERVED_FROM_CACHE = "served_from_cache"
    CACHED = "cached"
    NOT_CACHED = "not_cached"
    UNCACHEABLE = "uncacheable"


class Classification(str, Enum):
    """Verdict on a freshly rendered page."""
    CACHEABLE = "cacheable"
    STILL_LOCKED = "still_locked"
    UNCACHEABLE = "uncacheable"


@dataclass
class RenderedPage:
    """
    Fully buffered response produced by the host renderer.

    ``headers`` is an ordered list of pairs so repeated fields such as
    ``Set-Cookie`` survive the capture path.
    """
    body: bytes
    status_code: int = 200
    headers: List[Tuple[str, str]] = field(default_factory=list)
    media_type: Optional[str] = "text/html"

    def header(self, name: str) -> Optional[str]:
        """First value of a header, matched case-insensitively."""
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None


@dataclass
class Outcome:
    """
    Result of ``CacheCoordinator.handle``.

    ``page`` is None for passthrough decisions; the caller then renders
    normally and applies ``headers`` on top of the rendered response.
    """
    decision: Decision
    page: Optional[RenderedPage] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_passthrough(self) -> bool:
        return self.page is None
