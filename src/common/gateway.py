from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from state.models import CacheEntry, CacheStore

from .alpha_vantage import (
    AlphaVantageError,
    AlphaVantageInvalidSymbolError,
    AlphaVantageMalformedResponse,
    AlphaVantageNetworkError,
    AlphaVantageRateLimitError,
)
from .logging import get_logger


log = get_logger(__name__)


class CacheKind(str, Enum):
    PRICE = "PRICE"
    RSI = "RSI"


DEFAULT_TTLS: Dict[CacheKind, float] = {
    CacheKind.PRICE: 3600.0,
    CacheKind.RSI: 6 * 3600.0,
}


def cache_key(kind: CacheKind, interval: str, symbol: str) -> str:
    return f"{kind.value}:{interval}:{symbol.upper()}"


def failure_reason(exc: BaseException) -> str:
    """Map a fetch exception to a short reason code for logs and results."""
    if isinstance(exc, AlphaVantageRateLimitError):
        return "rate_limit"
    if isinstance(exc, AlphaVantageInvalidSymbolError):
        return "invalid_symbol"
    if isinstance(exc, AlphaVantageNetworkError):
        return "network"
    if isinstance(exc, (AlphaVantageMalformedResponse, KeyError, ValueError, TypeError)):
        return "malformed"
    if isinstance(exc, AlphaVantageError):
        return "provider_error"
    return "unexpected"


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of one gateway lookup.

    - ok: the value comes from a fresh cache hit or a successful fetch.
    - value: payload to use (may be a stale cached value when `ok` is False).
    - reason: failure reason code when the refresh failed, else None.
    - from_cache: value was read from the store rather than fetched now.
    - stale: value is older than the TTL.
    """

    ok: bool
    value: Any = None
    reason: Optional[str] = None
    from_cache: bool = False
    stale: bool = False

    @property
    def available(self) -> bool:
        return self.value is not None


class QuoteCacheGateway:
    """
    Wraps provider fetches with TTL caching and stale-value fallback.

    Per key: MISSING -> FRESH after a successful fetch; FRESH -> STALE once
    the TTL elapses; STALE -> FRESH on a successful refresh, or stays STALE
    (timestamp unchanged) when the refresh fails. Nothing is ever deleted.

    `fetch_with_cache` never raises for provider failures. Throttling is the
    job of the provider client invoked inside `fetch_fn`.
    """

    def __init__(
        self,
        store: CacheStore,
        *,
        clock: Callable[[], float] = time.time,
        retention: Optional[float] = None,
    ) -> None:
        self._store = store
        self._clock = clock
        # Store-level expiry, independent of freshness TTLs; None keeps entries forever
        self._retention = retention

    def _read(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = self._store.get(key)
        except Exception as exc:  # store trouble must not break the lookup
            log.warning("cache_read_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate(raw)
        except ValidationError:
            log.warning("cache_entry_invalid", key=key)
            return None

    def _write(self, key: str, entry: CacheEntry) -> None:
        try:
            self._store.put(key, entry.model_dump(), self._retention)
        except Exception as exc:
            log.warning("cache_write_failed", key=key, error=str(exc))

    def fetch(self, key: str, ttl: float, fetch_fn: Callable[[], Any]) -> FetchResult:
        now = self._clock()
        entry = self._read(key)
        if entry is not None and entry.is_fresh(now, ttl):
            return FetchResult(ok=True, value=entry.value, from_cache=True)

        try:
            value = fetch_fn()
        except Exception as exc:
            reason = failure_reason(exc)
            if entry is not None:
                log.warning(
                    "fetch_failed_serving_stale",
                    key=key,
                    reason=reason,
                    error=str(exc),
                    age=round(entry.age(now), 1),
                )
                return FetchResult(ok=False, value=entry.value, reason=reason, from_cache=True, stale=True)
            log.warning("fetch_failed_no_cache", key=key, reason=reason, error=str(exc))
            return FetchResult(ok=False, reason=reason)

        self._write(key, CacheEntry(value=value, timestamp=self._clock()))
        log.debug("fetch_stored", key=key)
        return FetchResult(ok=True, value=value)

    def fetch_with_cache(self, key: str, ttl: float, fetch_fn: Callable[[], Any]) -> Any:
        """Return the fresh, refreshed, stale or missing (None) payload for `key`."""
        return self.fetch(key, ttl, fetch_fn).value


__all__ = [
    "CacheKind",
    "DEFAULT_TTLS",
    "FetchResult",
    "QuoteCacheGateway",
    "cache_key",
    "failure_reason",
]
