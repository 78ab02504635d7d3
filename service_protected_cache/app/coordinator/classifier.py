"""
Classification of rendered pages before they are written to the cache.
"""

from typing import Iterable, List, Protocol

from .models import Classification, RenderedPage


class PageClassifier(Protocol):
    """Decides whether a rendered page may be stored."""

    def classify(self, page: RenderedPage) -> Classification:
        ...


class LockMarkerClassifier:
    """
    Flags pages that still contain the password form.

    A page is cacheable only when it rendered with a 200 status and none of
    the lock markers occur anywhere in its body.
    """

    def __init__(self, markers: Iterable[str], cacheable_statuses: Iterable[int] = (200,)):
        self.markers: List[bytes] = [marker.encode("utf-8") for marker in markers if marker]
        self.cacheable_statuses = frozenset(cacheable_statuses)

    def contains_marker(self, body: bytes) -> bool:
        return any(marker in body for marker in self.markers)

    def classify(self, page: RenderedPage) -> Classification:
        if self.contains_marker(page.body):
            return Classification.STILL_LOCKED
        if page.status_code not in self.cacheable_statuses:
            return Classification.UNCACHEABLE
        return Classification.CACHEABLE
