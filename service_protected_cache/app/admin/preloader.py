"""
Best-effort cache warming through outbound page fetches.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx

from shared.logging import get_logger

from .catalog import GatedResource


@dataclass
class PreloadReport:
    """Counts of fetches issued during one preload run."""

    requested: int = 0
    failed: int = 0
    urls: List[str] = field(default_factory=list)


class Preloader:
    """
    Requests the public URL of each gated resource, one at a time.

    The fetch is fire-and-forget: responses are discarded and errors are
    only counted. Entries get created by the normal request path, which
    only happens when the fetching agent already carries the shared unlock
    credential (``cookie``). No timeout is imposed beyond the HTTP client's
    default unless ``timeout`` is given.
    """

    def __init__(
        self,
        public_base_url: str,
        path_template: str = "/resources/{resource_id}",
        *,
        timeout: Optional[float] = None,
        cookie: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.public_base_url = public_base_url.rstrip("/")
        self.path_template = path_template
        self.timeout = timeout
        self.cookie = cookie
        self.transport = transport
        self.logger = get_logger("protected_cache.preloader")

    def url_for(self, resource: GatedResource) -> str:
        if resource.url:
            return resource.url
        path = self.path_template.format(resource_id=resource.resource_id)
        return f"{self.public_base_url}/{path.lstrip('/')}"

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"follow_redirects": True}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        if self.cookie:
            kwargs["headers"] = {"Cookie": self.cookie}
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return kwargs

    async def preload(self, resources: Iterable[GatedResource]) -> PreloadReport:
        report = PreloadReport()
        async with httpx.AsyncClient(**self._client_kwargs()) as client:
            for resource in resources:
                url = self.url_for(resource)
                report.requested += 1
                report.urls.append(url)
                try:
                    await client.get(url)
                except httpx.HTTPError as e:
                    report.failed += 1
                    self.logger.debug("Preload fetch failed", url=url, error=str(e))
        return report
