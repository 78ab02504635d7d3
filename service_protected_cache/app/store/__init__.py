"""
Cache storage package.

One file per resource under a single owner-only directory. Writes are
atomic replaces; reads never raise.
"""

from .cache_store import CacheStore, CacheEntryInfo

__all__ = ["CacheStore", "CacheEntryInfo"]
