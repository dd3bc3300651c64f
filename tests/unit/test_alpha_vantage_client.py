from __future__ import annotations

from typing import Any, Dict

import httpx
import pytest

from common.alpha_vantage import (
    AlphaVantageApiError,
    AlphaVantageClient,
    AlphaVantageInvalidSymbolError,
    AlphaVantageMalformedResponse,
    AlphaVantageNetworkError,
    AlphaVantageRateLimitError,
)
from common.rate_limiter import MinIntervalRateLimiter


def _weekly_payload() -> Dict[str, Any]:
    # Newest first, as the API sends it; one entry has an unusable close
    return {
        "Meta Data": {
            "1. Information": "Weekly Prices (open, high, low, close) and Volumes",
            "2. Symbol": "ESE.PA",
        },
        "Weekly Time Series": {
            "2024-09-13": {
                "1. open": "27.10",
                "2. high": "27.60",
                "3. low": "26.90",
                "4. close": "27.50",
                "5. volume": "120000",
            },
            "2024-09-06": {
                "1. open": "27.40",
                "2. high": "27.50",
                "3. low": "26.70",
                "4. close": "26.80",
                "5. volume": "140000",
            },
            "2024-08-30": {
                "1. open": "27.00",
                "2. high": "27.45",
                "3. low": "26.95",
                "4. close": "None",
                "5. volume": "0",
            },
            "2024-08-23": {
                "1. open": "26.80",
                "2. high": "27.20",
                "3. low": "26.60",
                "4. close": "27.05",
                "5. volume": "110000",
            },
        },
    }


def _daily_payload() -> Dict[str, Any]:
    return {
        "Meta Data": {"2. Symbol": "BTC-USD"},
        "Time Series (Daily)": {
            "2024-09-02": {"4. close": "58000.10"},
            "2024-09-03": {"4. close": "59012.55"},
        },
    }


def _rsi_payload() -> Dict[str, Any]:
    return {
        "Meta Data": {"1: Symbol": "ESE.PA", "2: Indicator": "Relative Strength Index (RSI)"},
        "Technical Analysis: RSI": {
            "2024-09-06": {"RSI": "55.1200"},
            "2024-09-13": {"RSI": "61.4030"},
            "2024-08-30": {"RSI": "52.0000"},
        },
    }


def _client(handler) -> AlphaVantageClient:
    http = httpx.Client(transport=httpx.MockTransport(handler), timeout=10.0)
    return AlphaVantageClient("DUMMY", client=http, min_interval=0.0)


def test_weekly_closes_sorted_oldest_first_and_skip_bad_rows():
    calls = {"count": 0, "last_request": None}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        calls["last_request"] = request
        return httpx.Response(200, json=_weekly_payload())

    with _client(handler) as av:
        points = av.closes("ESE.PA", "weekly")

    assert calls["count"] == 1
    req = calls["last_request"]
    assert req.url.params.get("function") == "TIME_SERIES_WEEKLY"
    assert req.url.params.get("symbol") == "ESE.PA"
    assert req.url.params.get("apikey") == "DUMMY"

    assert [p.ts.isoformat() for p in points] == ["2024-08-23", "2024-09-06", "2024-09-13"]
    assert [p.close for p in points] == [27.05, 26.80, 27.50]


def test_monthly_uses_monthly_function():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["function"] = request.url.params.get("function")
        return httpx.Response(200, json={"Monthly Time Series": {"2024-08-30": {"4. close": "10.0"}}})

    with _client(handler) as av:
        points = av.closes("WPEA.PA", "monthly")

    assert seen["function"] == "TIME_SERIES_MONTHLY"
    assert points[0].close == 10.0


def test_unsupported_interval_rejected():
    with _client(lambda _r: httpx.Response(200, json={})) as av:
        with pytest.raises(ValueError):
            av.closes("WPEA.PA", "hourly")  # type: ignore[arg-type]


def test_latest_close_is_newest_daily():
    with _client(lambda _r: httpx.Response(200, json=_daily_payload())) as av:
        assert av.latest_close("BTC-USD") == 59012.55


def test_provider_rsi_newest_first():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(200, json=_rsi_payload())

    with _client(handler) as av:
        points = av.rsi("ESE.PA", "weekly", period=14)

    assert seen["function"] == "RSI"
    assert seen["interval"] == "weekly"
    assert seen["time_period"] == "14"
    assert seen["series_type"] == "close"
    assert [p.value for p in points] == [61.403, 55.12, 52.0]


def test_api_throttle_note_in_200_body_raises():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute and 500 calls per day."})

    with _client(handler) as av:
        with pytest.raises(AlphaVantageRateLimitError):
            av.closes("AAPL", "weekly")


def test_information_quota_notice_raises_rate_limit():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Information": "We have detected your API key and our standard API rate limit is 25 requests per day."})

    with _client(handler) as av:
        with pytest.raises(AlphaVantageRateLimitError):
            av.latest_close("AAPL")


def test_error_message_raises_invalid_symbol():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Error Message": "Invalid API call."})

    with _client(handler) as av:
        with pytest.raises(AlphaVantageInvalidSymbolError):
            av.closes("NOPE", "weekly")


def test_http_error_status_raises_api_error():
    with _client(lambda _r: httpx.Response(503, text="unavailable")) as av:
        with pytest.raises(AlphaVantageApiError):
            av.closes("AAPL", "daily")


def test_transport_error_raises_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with _client(handler) as av:
        with pytest.raises(AlphaVantageNetworkError):
            av.closes("AAPL", "daily")


def test_missing_or_empty_series_is_malformed():
    with _client(lambda _r: httpx.Response(200, json={"Meta Data": {}})) as av:
        with pytest.raises(AlphaVantageMalformedResponse):
            av.closes("AAPL", "weekly")
    with _client(lambda _r: httpx.Response(200, json={"Weekly Time Series": {}})) as av:
        with pytest.raises(AlphaVantageMalformedResponse):
            av.closes("AAPL", "weekly")
    with _client(lambda _r: httpx.Response(200, text="<html>oops</html>")) as av:
        with pytest.raises(AlphaVantageMalformedResponse):
            av.rsi("AAPL", "weekly")


def test_requires_api_key():
    with pytest.raises(ValueError):
        AlphaVantageClient("")


def test_series_without_any_usable_close_is_malformed():
    payload = {
        "Weekly Time Series": {
            "2024-09-13": {"1. open": "27.10"},
            "2024-09-06": {"1. open": "27.40", "4. close": "n/a"},
        }
    }
    with _client(lambda _r: httpx.Response(200, json=payload)) as av:
        with pytest.raises(AlphaVantageMalformedResponse):
            av.closes("ESE.PA", "weekly")


def test_rsi_series_without_any_usable_value_is_malformed():
    payload = {"Technical Analysis: RSI": {"2024-09-13": {"MACD": "1.0"}}}
    with _client(lambda _r: httpx.Response(200, json=payload)) as av:
        with pytest.raises(AlphaVantageMalformedResponse):
            av.rsi("ESE.PA", "weekly")


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.t

    def sleep(self, dt: float) -> None:
        self.sleeps.append(dt)
        self.t += dt


def test_requests_go_through_shared_limiter():
    clock = FakeClock()
    limiter = MinIntervalRateLimiter(20.0, clock=clock, sleep=clock.sleep)
    http = httpx.Client(transport=httpx.MockTransport(lambda _r: httpx.Response(200, json=_daily_payload())))

    with AlphaVantageClient("DUMMY", client=http, limiter=limiter) as av:
        av.closes("BTC-USD", "daily")
        av.closes("BTC-USD", "daily")

    assert clock.sleeps == [20.0]
