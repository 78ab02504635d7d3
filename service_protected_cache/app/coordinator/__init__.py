"""
Cache coordinator package.

Evaluates the per-request state machine (passthrough, locked, privileged
bypass, hit, capture) and adapts it to ASGI.
"""

from .classifier import LockMarkerClassifier, PageClassifier
from .coordinator import CacheCoordinator, NO_CACHE_HEADERS
from .middleware import StaticCacheMiddleware, install_static_cache
from .models import Classification, Decision, Outcome, RenderedPage

__all__ = [
    "CacheCoordinator",
    "Classification",
    "Decision",
    "LockMarkerClassifier",
    "NO_CACHE_HEADERS",
    "Outcome",
    "PageClassifier",
    "RenderedPage",
    "StaticCacheMiddleware",
    "install_static_cache",
]
