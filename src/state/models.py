from __future__ import annotations

from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """
    A cached provider payload and the moment it was fetched.

    Fields
    - value: JSON-serializable payload (a price, an RSI reading dict, ...).
    - timestamp: epoch seconds of the successful fetch that produced `value`.

    Notes
    - Stored as a plain JSON blob `{"value": ..., "timestamp": ...}`.
    - An entry is fresh while `now - timestamp <= ttl`; stale entries are kept
      and served as a fallback when a refresh fails.
    """

    value: Any = Field(default=None, description="Cached payload")
    timestamp: float = Field(..., description="Epoch seconds of the fetch")

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, now: float, ttl: float) -> bool:
        return self.age(now) <= ttl


class CacheStore(Protocol):
    """Minimal key-value store used by the quote cache gateway."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ...
