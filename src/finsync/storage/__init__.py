"""
Local Storage Package

Durable JSON-blob storage of the entity collections and the cursor map, plus
the in-memory cache handle every engine component shares.
"""

from .cache_store import CacheStore
from .local_cache import CacheSnapshot, LocalCache

__all__ = [
    "CacheSnapshot",
    "CacheStore",
    "LocalCache",
]
