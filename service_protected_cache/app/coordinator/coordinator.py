"""
Request-path state machine for the protected static cache.
"""

import time
from typing import Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from shared.config import DEFAULT_LOCK_MARKERS
from shared.logging import get_logger, set_resource_context
from shared.errors import CacheStoreError, InvalidResourceIdError

from ..audit.log import AuditLog
from ..gate.evaluator import GateEvaluator, GateSnapshot, RequestContext
from ..store.cache_store import CacheStore
from .classifier import LockMarkerClassifier, PageClassifier
from .models import Classification, Decision, Outcome, RenderedPage
from .singleflight import KeyedLock

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


NO_CACHE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0, private",
    "Pragma": "no-cache",
    "Expires": "Thu, 01 Jan 1970 00:00:00 GMT",
    "Surrogate-Control": "no-store",
}

# Unlocked pages must not land in shared caches either.
UNLOCKED_HEADERS: Dict[str, str] = {
    "Cache-Control": "private",
}

Renderer = Callable[[], Awaitable[RenderedPage]]


class CacheCoordinator:
    """
    Decides, per request, how a gated resource is served.

    States are evaluated in this order:

    1. not a single-resource view: passthrough
    2. resource not gated: passthrough
    3. locked: passthrough with no-cache headers
    4. unlocked, privileged requester: passthrough, cache never touched
    5. unlocked, entry present: stored bytes served, render skipped
    6. unlocked, no entry: render, classify, store if cacheable, serve

    HEAD requests go through states 1 to 4 so locked resources still get
    no-cache directives, then pass through with private caching only.

    ``handle`` only invokes the renderer in state 6. The coordinator holds
    no per-request state; everything request-scoped lives on the
    ``RequestContext``.
    """

    def __init__(
        self,
        store: CacheStore,
        gate: GateEvaluator,
        audit_log: AuditLog,
        *,
        classifier: Optional[PageClassifier] = None,
        system_name: str = "PPSC",
        single_flight: bool = True,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.gate = gate
        self.audit_log = audit_log
        self.classifier = classifier or LockMarkerClassifier(DEFAULT_LOCK_MARKERS)
        self.system_name = system_name
        self.metrics = metrics
        self.logger = get_logger("protected_cache.coordinator")
        self._render_locks: Optional[KeyedLock] = KeyedLock() if single_flight else None

    @property
    def cached_marker(self) -> bytes:
        return f"<!-- Cached by {self.system_name} -->\n".encode("utf-8")

    @property
    def not_cached_marker(self) -> bytes:
        return f"<!-- Not cached by {self.system_name} -->\n".encode("utf-8")

    def _record(self, ctx: RequestContext, message: str) -> None:
        ctx.trail.append(message)
        self.audit_log.append(message)

    def _finish(self, outcome: Outcome) -> Outcome:
        if self.metrics:
            self.metrics.record_cache_decision(outcome.decision.value)
        return outcome

    async def handle(self, ctx: RequestContext, render: Renderer) -> Outcome:
        """Run the state machine for one request."""
        if ctx.resource_id is None:
            return self._finish(Outcome(Decision.PASSTHROUGH))

        try:
            resource_id = self.store.normalize_id(ctx.resource_id)
        except InvalidResourceIdError:
            self.logger.warning("Unsafe resource id, serving uncached", resource_id=str(ctx.resource_id))
            return self._finish(Outcome(Decision.PASSTHROUGH))
        ctx.resource_id = resource_id

        set_resource_context(resource_id)
        gate = GateSnapshot(self.gate, ctx)

        if not await gate.is_gated():
            return self._finish(Outcome(Decision.PASSTHROUGH))

        if await gate.is_locked():
            self._record(ctx, f"Setting no-cache headers for resource {resource_id} (locked => password form).")
            return self._finish(Outcome(Decision.LOCKED, headers=dict(NO_CACHE_HEADERS)))

        if await gate.is_privileged():
            self._record(ctx, f"Privileged user => ignoring cache for resource {resource_id}.")
            return self._finish(Outcome(Decision.PRIVILEGED_BYPASS))

        if ctx.head_only:
            # A HEAD response has no body to store or replay.
            return self._finish(Outcome(Decision.PASSTHROUGH, headers=dict(UNLOCKED_HEADERS)))

        served = self._serve_cached(ctx, resource_id)
        if served is not None:
            return self._finish(served)

        self._record(ctx, f"No cache file for unlocked resource {resource_id} => normal render.")

        if self._render_locks is None:
            return self._finish(await self._capture(ctx, resource_id, render))

        async with self._render_locks.hold(resource_id):
            # Another request may have populated the entry while we waited.
            served = self._serve_cached(ctx, resource_id)
            if served is not None:
                return self._finish(served)
            return self._finish(await self._capture(ctx, resource_id, render))

    def _serve_cached(self, ctx: RequestContext, resource_id: str) -> Optional[Outcome]:
        payload = self.store.get(resource_id)
        if payload is None:
            return None

        self._record(ctx, f"Serving cache => {self.store.path_for(resource_id)}")
        page = RenderedPage(
            body=self.cached_marker + payload,
            headers=list(UNLOCKED_HEADERS.items()),
        )
        return Outcome(Decision.SERVED_FROM_CACHE, page=page)

    async def _capture(self, ctx: RequestContext, resource_id: str, render: Renderer) -> Outcome:
        self._record(ctx, f"Capturing output for resource {resource_id} => no cache yet.")

        start = time.perf_counter()
        page = await render()
        if self.metrics:
            self.metrics.get_metric("cache_render_duration_seconds").observe(time.perf_counter() - start)

        classification = self.classifier.classify(page)
        return self.finalize(ctx, resource_id, page, classification)

    def finalize(
        self,
        ctx: RequestContext,
        resource_id: str,
        page: RenderedPage,
        classification: Classification,
    ) -> Outcome:
        """Store and annotate a captured page according to its classification."""
        if classification is Classification.STILL_LOCKED:
            self._record(ctx, f"Password form found => skip cache for resource {resource_id}.")
            self.logger.warning(
                "Gate reported unlocked but render still contains the lock marker",
                resource_id=resource_id
            )
            return Outcome(
                Decision.NOT_CACHED,
                page=self._annotate(page, self.not_cached_marker, NO_CACHE_HEADERS),
            )

        if classification is Classification.UNCACHEABLE:
            self._record(ctx, f"Render returned status {page.status_code} => skip cache for resource {resource_id}.")
            return Outcome(Decision.UNCACHEABLE, page=page)

        cache_path = self.store.path_for(resource_id)
        try:
            self.store.ensure_directory()
            self.store.put(resource_id, page.body)
        except CacheStoreError as exc:
            self._record(ctx, f"Failed to write => {cache_path} ({exc.message})")
            if self.metrics:
                self.metrics.record_cache_write("error")
            return Outcome(
                Decision.NOT_CACHED,
                page=self._annotate(page, self.not_cached_marker, UNLOCKED_HEADERS),
            )

        if self.metrics:
            self.metrics.record_cache_write("ok")
        self._record(ctx, f"Cache file created => {cache_path}")
        return Outcome(
            Decision.CACHED,
            page=self._annotate(page, self.cached_marker, UNLOCKED_HEADERS),
        )

    @staticmethod
    def _annotate(page: RenderedPage, marker: bytes, headers: Dict[str, str]) -> RenderedPage:
        overridden = {name.lower() for name in headers}
        merged = [(name, value) for name, value in page.headers if name.lower() not in overridden]
        merged.extend(headers.items())
        return RenderedPage(
            body=marker + page.body,
            status_code=page.status_code,
            headers=merged,
            media_type=page.media_type,
        )
