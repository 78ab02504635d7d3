"""
ASGI middleware that puts the cache coordinator in front of the host renderer.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from shared.logging import get_logger

from ..gate.evaluator import RequestContext, ResourceResolver
from .coordinator import CacheCoordinator
from .models import RenderedPage

# Recomputed by Response from the new body.
_DROPPED_HEADERS = {"content-length"}


class StaticCacheMiddleware(BaseHTTPMiddleware):
    """
    Runs every request through ``CacheCoordinator.handle``.

    Downstream routes act as the renderer: they are only buffered on the
    capture path, otherwise their response streams through untouched apart
    from any headers the coordinator adds.
    """

    def __init__(self, app: ASGIApp, coordinator: CacheCoordinator, resolver: ResourceResolver):
        super().__init__(app)
        self.coordinator = coordinator
        self.resolver = resolver
        self.logger = get_logger("protected_cache.middleware")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        ctx = RequestContext(
            request=request,
            resource_id=self.resolver(request),
            head_only=request.method == "HEAD",
        )
        request.state.static_cache = ctx

        async def render() -> RenderedPage:
            response = await call_next(request)
            return await self._buffer(response)

        outcome = await self.coordinator.handle(ctx, render)

        if outcome.page is None:
            response = await call_next(request)
            for name, value in outcome.headers.items():
                response.headers[name] = value
            return response

        return self._to_response(outcome.page)

    @staticmethod
    async def _buffer(response: Response) -> RenderedPage:
        chunks = []
        async for chunk in response.body_iterator:
            chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode(response.charset))
        headers = [
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in response.headers.raw
            if name.decode("latin-1").lower() not in _DROPPED_HEADERS
        ]
        page = RenderedPage(body=b"".join(chunks), status_code=response.status_code, headers=headers)
        page.media_type = page.header("content-type")
        return page

    @staticmethod
    def _to_response(page: RenderedPage) -> Response:
        response = Response(
            content=page.body,
            status_code=page.status_code,
            media_type=None if _has_content_type(page) else page.media_type,
        )
        for name, value in page.headers:
            if name.lower() in _DROPPED_HEADERS:
                continue
            response.headers.append(name, value)
        return response


def _has_content_type(page: RenderedPage) -> bool:
    return page.header("content-type") is not None


def install_static_cache(app, coordinator: CacheCoordinator, resolver: ResourceResolver) -> None:
    """Register the static cache middleware on a Starlette/FastAPI app."""
    app.add_middleware(StaticCacheMiddleware, coordinator=coordinator, resolver=resolver)
