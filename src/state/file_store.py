from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional


DEFAULT_CACHE_DIR_ENV = "RSI_CACHE_DIR"


def _default_cache_file() -> Path:
    # Prefer explicit env var, else project-local .cache folder
    base = os.environ.get(DEFAULT_CACHE_DIR_ENV)
    if base:
        return Path(base) / "quotes.json"
    return Path(".cache") / "quotes.json"


class FileCacheStore:
    """
    Tiny JSON-file store for local runs.

    - Backed by a single JSON file: { key: {"value": ..., "expires_at": float|null}, ... }
    - Loaded lazily on first access, rewritten on every `put`.
    - Safe to use in Lambda with /tmp, but persistence across cold starts is not guaranteed.
    """

    def __init__(
        self,
        path: Optional[os.PathLike[str] | str] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = Path(path) if path else _default_cache_file()
        self._data: Dict[str, Dict[str, Any]] = {}
        self._loaded = False
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    self._data = {str(k): v for k, v in raw.items() if isinstance(v, dict)}
        except (OSError, ValueError):
            # Corrupt cache: ignore and start fresh
            self._data = {}

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
        except OSError:
            # Best-effort cache; an unwritable file only costs extra provider calls
            pass

    def get(self, key: str) -> Optional[Any]:
        self._ensure_loaded()
        item = self._data.get(key)
        if item is None:
            return None
        expires_at = item.get("expires_at")
        if isinstance(expires_at, (int, float)) and self._clock() >= expires_at:
            return None
        return item.get("value")

    def put(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._ensure_loaded()
        self._data[key] = {
            "value": value,
            "expires_at": self._clock() + ttl if ttl is not None else None,
        }
        self._save()
