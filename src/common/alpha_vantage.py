from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel, Field

from .rate_limiter import MinIntervalRateLimiter


DEFAULT_BASE_URL = "https://www.alphavantage.co/query"
DEFAULT_MIN_INTERVAL = 15.0

Interval = Literal["daily", "weekly", "monthly"]

_SERIES_FUNCTIONS: Dict[str, str] = {
    "daily": "TIME_SERIES_DAILY",
    "weekly": "TIME_SERIES_WEEKLY",
    "monthly": "TIME_SERIES_MONTHLY",
}

RSI_SERIES_KEY = "Technical Analysis: RSI"


class AlphaVantageError(RuntimeError):
    """Base error for Alpha Vantage client."""


class AlphaVantageApiError(AlphaVantageError):
    """API returned an error status or error payload."""


class AlphaVantageInvalidSymbolError(AlphaVantageApiError):
    """API rejected the request parameters (usually an unknown symbol)."""


class AlphaVantageRateLimitError(AlphaVantageError):
    """Provider quota notice returned instead of data."""


class AlphaVantageNetworkError(AlphaVantageError):
    """Transport-level failure (timeout, connection reset, DNS, ...)."""


class AlphaVantageMalformedResponse(AlphaVantageError):
    """Response body lacks the expected structure."""


class PricePoint(BaseModel):
    ts: date = Field(..., description="Period end date")
    close: float


class IndicatorPoint(BaseModel):
    ts: date
    value: float


def _parse_date(s: str) -> date:
    # Intraday-style keys carry a time part: "YYYY-MM-DD HH:MM"
    return datetime.strptime(s.split(" ")[0], "%Y-%m-%d").date()


class AlphaVantageClient:
    """
    Minimal Alpha Vantage client with client-side throttling.

    Notes
    - Free plan quota is small and shared per key, so every request first
      acquires a single-permit limiter (one call in flight, `min_interval`
      seconds between calls). Pass a shared `limiter` to throttle several
      clients together.
    - Errors reported inside a 200 body (`Note`, `Information`,
      `Error Message`) are raised as exceptions, same as HTTP failures.
    - No retries: callers fall back to cached data instead.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
        limiter: Optional[MinIntervalRateLimiter] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._base_url = base_url.rstrip("?")
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self._timeout)
        self._limiter = limiter or MinIntervalRateLimiter(min_interval)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "AlphaVantageClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def closes(self, symbol: str, interval: Interval = "daily") -> List[PricePoint]:
        """
        Fetch the closing-price series for `symbol` at `interval`.

        Returns points oldest first. Entries without a usable close are skipped.
        """
        fn = _SERIES_FUNCTIONS.get(interval)
        if fn is None:
            raise ValueError(f"unsupported interval: {interval}")
        data = self._request({"function": fn, "symbol": symbol, "datatype": "json"})
        return self._parse_series_payload(data)

    def latest_close(self, symbol: str) -> float:
        """Newest daily close for `symbol`."""
        points = self.closes(symbol, "daily")
        if not points:
            raise AlphaVantageMalformedResponse(f"No usable daily close for {symbol}")
        return points[-1].close

    def rsi(self, symbol: str, interval: Interval = "weekly", *, period: int = 14) -> List[IndicatorPoint]:
        """
        Fetch the provider-computed RSI series (`function=RSI`, series_type=close).

        Returns points newest first.
        """
        params = {
            "function": "RSI",
            "symbol": symbol,
            "interval": interval,
            "time_period": str(period),
            "series_type": "close",
            "datatype": "json",
        }
        data = self._request(params)
        return self._parse_rsi_payload(data)

    # --------------- Internal ---------------
    def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        query = {**params, "apikey": self._api_key}

        with self._limiter:
            try:
                resp = self._client.get(self._base_url, params=query)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                raise AlphaVantageNetworkError(f"Request to Alpha Vantage failed: {exc}") from exc

        if resp.status_code != 200:
            raise AlphaVantageApiError(
                f"HTTP {resp.status_code} from Alpha Vantage: {resp.text[:200]}"
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise AlphaVantageMalformedResponse("Alpha Vantage returned non-JSON body") from exc
        if not isinstance(payload, dict):
            raise AlphaVantageMalformedResponse("Alpha Vantage returned a non-object body")
        self._raise_on_api_error(payload)
        return payload

    @staticmethod
    def _raise_on_api_error(payload: Dict[str, Any]) -> None:
        # API returns one of these keys for problems, with HTTP 200
        if "Error Message" in payload:
            raise AlphaVantageInvalidSymbolError(payload.get("Error Message", "API error"))
        if "Note" in payload:
            raise AlphaVantageRateLimitError(payload.get("Note", "Rate limit exceeded"))
        if "Information" in payload:
            # Used for daily quota exhaustion and premium-only endpoints
            raise AlphaVantageRateLimitError(payload.get("Information", "API info message"))

    @staticmethod
    def _parse_series_payload(payload: Dict[str, Any]) -> List[PricePoint]:
        # "Time Series (Daily)", "Weekly Time Series", "Monthly Time Series"
        series_key = next((k for k in payload.keys() if "Time Series" in k), None)
        if not series_key or not isinstance(payload[series_key], dict):
            raise AlphaVantageMalformedResponse("Time series missing in payload")

        series: Dict[str, Any] = payload[series_key]
        if not series:
            raise AlphaVantageMalformedResponse("Time series is empty")

        items: List[PricePoint] = []
        for ts_str, fields in series.items():
            if not isinstance(fields, dict):
                continue
            try:
                items.append(PricePoint(ts=_parse_date(ts_str), close=float(fields["4. close"])))
            except (KeyError, TypeError, ValueError):
                continue

        if not items:
            raise AlphaVantageMalformedResponse("No usable closes in time series")
        items.sort(key=lambda p: p.ts)
        return items

    @staticmethod
    def _parse_rsi_payload(payload: Dict[str, Any]) -> List[IndicatorPoint]:
        series = payload.get(RSI_SERIES_KEY)
        if not isinstance(series, dict):
            raise AlphaVantageMalformedResponse("RSI series missing in payload")

        items: List[IndicatorPoint] = []
        for ts_str, fields in series.items():
            if not isinstance(fields, dict):
                continue
            try:
                items.append(IndicatorPoint(ts=_parse_date(ts_str), value=float(fields["RSI"])))
            except (KeyError, TypeError, ValueError):
                continue

        if not items:
            raise AlphaVantageMalformedResponse("No usable values in RSI series")
        items.sort(key=lambda p: p.ts, reverse=True)
        return items


__all__ = [
    "AlphaVantageClient",
    "AlphaVantageError",
    "AlphaVantageApiError",
    "AlphaVantageInvalidSymbolError",
    "AlphaVantageRateLimitError",
    "AlphaVantageNetworkError",
    "AlphaVantageMalformedResponse",
    "IndicatorPoint",
    "Interval",
    "PricePoint",
]
