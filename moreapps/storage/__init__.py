"""Storage layer for moreapps.

This package contains the persistent document store used by the catalog
cache.
"""

from moreapps.storage.cache_store import CacheStore, default_cache_path

__all__ = ["CacheStore", "default_cache_path"]
