"""
Key-value cache stores for provider payloads.

All stores implement `get(key)` / `put(key, value, ttl=None)` and hold plain
JSON values; freshness of cached quotes is decided by the gateway, not here.
"""

from .models import CacheEntry, CacheStore
from .memory_store import MemoryCacheStore
from .file_store import FileCacheStore

__all__ = ["CacheEntry", "CacheStore", "MemoryCacheStore", "FileCacheStore"]
