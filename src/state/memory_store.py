from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class MemoryCacheStore:
    """
    In-process key-value store with optional per-key expiry.

    - `put(key, value, ttl)` keeps the value until `ttl` seconds have elapsed
      (forever when `ttl` is None).
    - Expired keys read as missing and are dropped lazily.

    Survives only as long as the process (e.g., a warm Lambda container).
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def __len__(self) -> int:
        return len(self._data)
