"""
Administrative control surface for the static cache.
"""

from .catalog import FileResourceCatalog, GatedResource, ResourceCatalog, StaticResourceCatalog
from .nonce import CACHE_ACTION, NonceManager
from .operations import ActionResult, AdminOperations, CoverageRow
from .preloader import PreloadReport, Preloader

__all__ = [
    "ActionResult",
    "AdminOperations",
    "CACHE_ACTION",
    "CoverageRow",
    "FileResourceCatalog",
    "GatedResource",
    "NonceManager",
    "PreloadReport",
    "Preloader",
    "ResourceCatalog",
    "StaticResourceCatalog",
]
