"""
Test helpers and factories for the protected static cache tests.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from service_protected_cache.app.admin.catalog import GatedResource
from service_protected_cache.app.coordinator.models import RenderedPage


LOCKED_PAGE = (
    b"<html><body>"
    b'<form action="/login" class="post-password-form" method="post">'
    b'<input name="post_password" type="password"/></form>'
    b"</body></html>"
)


@dataclass
class StubGateEvaluator:
    """Gate with fixed answers that counts how often each question was asked."""
    gated: bool = True
    locked: bool = False
    privileged: bool = False
    calls: Dict[str, int] = field(default_factory=dict)

    def _tick(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    async def is_gated_resource(self, ctx) -> bool:
        self._tick("is_gated_resource")
        return self.gated

    async def is_locked(self, ctx) -> bool:
        self._tick("is_locked")
        return self.locked

    async def is_privileged_bypass(self, ctx) -> bool:
        self._tick("is_privileged_bypass")
        return self.privileged


class CountingRenderer:
    """Renderer returning a fixed page and counting invocations."""

    def __init__(self, page: Optional[RenderedPage] = None):
        self.page = page or RenderedPage(body=unlocked_page(42))
        self.calls = 0

    async def __call__(self) -> RenderedPage:
        self.calls += 1
        return self.page


def unlocked_page(resource_id: Any) -> bytes:
    """Rendered body of an unlocked resource."""
    return (
        f"<html><body><article id=\"resource-{resource_id}\">"
        f"Members-only content for {resource_id}</article></body></html>"
    ).encode("utf-8")


class ResourceFactory:
    """Factory for creating test data."""
    
    @staticmethod
    def create_gated_resources() -> List[GatedResource]:
        """Create gated resources of several kinds and statuses."""
        return [
            GatedResource(resource_id="42", title="Board minutes", kind="post", status="publish"),
            GatedResource(resource_id="43", title="Pricing sheet", kind="page", status="private"),
            GatedResource(resource_id="44", title="Draft roadmap", kind="doc", status="draft",
                          url="https://intranet.example.com/docs/roadmap"),
        ]

    @staticmethod
    def create_catalog_payload() -> List[Dict[str, Any]]:
        """Raw JSON catalog as written by the host application."""
        return [
            {"id": 42, "title": "Board minutes", "kind": "post", "status": "publish"},
            {"id": 43, "title": "Pricing sheet", "kind": "page", "status": "private"},
            {"id": "44", "title": "Draft roadmap", "kind": "doc", "status": "draft",
             "url": "https://intranet.example.com/docs/roadmap"},
        ]
