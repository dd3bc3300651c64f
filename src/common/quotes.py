from __future__ import annotations

from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import ValidationError

from .alpha_vantage import AlphaVantageClient, AlphaVantageMalformedResponse, Interval
from .gateway import DEFAULT_TTLS, CacheKind, QuoteCacheGateway, cache_key
from .indicators import DEFAULT_RSI_PERIOD, RSIReading, rsi_reading
from .logging import get_logger


log = get_logger(__name__)

RSISource = Literal["local", "provider"]


class QuoteService:
    """
    Cached price and RSI lookups for one asset at a time.

    - `price(symbol)`: newest daily close, cached under PRICE:daily:SYMBOL.
    - `rsi(symbol, interval)`: RSIReading, cached under RSI:{interval}:SYMBOL.
      With `rsi_source="local"` the reading is computed from the provider's
      closing prices; with "provider" the provider's own RSI series is used.

    Lookups never raise for provider failures; missing data comes back as
    None / an empty reading.
    """

    def __init__(
        self,
        client: AlphaVantageClient,
        gateway: QuoteCacheGateway,
        *,
        ttls: Optional[Mapping[CacheKind, float]] = None,
        rsi_source: RSISource = "local",
        period: int = DEFAULT_RSI_PERIOD,
    ) -> None:
        if rsi_source not in ("local", "provider"):
            raise ValueError(f"unsupported rsi_source: {rsi_source}")
        self._client = client
        self._gateway = gateway
        self._ttls: Dict[CacheKind, float] = {**DEFAULT_TTLS, **(ttls or {})}
        self._rsi_source = rsi_source
        self._period = period

    def price(self, symbol: str) -> Optional[float]:
        value = self._gateway.fetch_with_cache(
            cache_key(CacheKind.PRICE, "daily", symbol),
            self._ttls[CacheKind.PRICE],
            lambda: self._client.latest_close(symbol),
        )
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    def rsi(self, symbol: str, interval: Interval) -> RSIReading:
        value = self._gateway.fetch_with_cache(
            cache_key(CacheKind.RSI, interval, symbol),
            self._ttls[CacheKind.RSI],
            lambda: self._fetch_rsi(symbol, interval),
        )
        if value is None:
            return RSIReading.empty()
        try:
            return RSIReading.model_validate(value)
        except ValidationError:
            log.warning("rsi_cache_payload_invalid", symbol=symbol, interval=interval)
            return RSIReading.empty()

    def _fetch_rsi(self, symbol: str, interval: Interval) -> Dict[str, Any]:
        if self._rsi_source == "provider":
            points = self._client.rsi(symbol, interval, period=self._period)
            if len(points) < 2:
                raise AlphaVantageMalformedResponse(f"RSI series too short for {symbol}")
            reading = RSIReading(current=points[0].value, previous=points[1].value)
        else:
            points = self._client.closes(symbol, interval)
            reading = rsi_reading([p.close for p in points], self._period)
        return reading.model_dump()


__all__ = ["QuoteService", "RSISource"]
