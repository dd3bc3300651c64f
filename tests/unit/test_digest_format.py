from datetime import date

from common.assets import AssetDescriptor
from common.digest import (
    ARROW_DOWN,
    ARROW_FLAT,
    ARROW_UP,
    build_digest,
    format_asset_block,
    trend_arrow,
)
from common.indicators import RSIReading


ETF = AssetDescriptor("ESE.PA", "ETF S&P500 (ESE)", "€")
BTC = AssetDescriptor("BTC-USD", "Bitcoin", "$")


def test_trend_arrow():
    assert trend_arrow(60.0, 55.0) == ARROW_UP
    assert trend_arrow(50.0, 55.0) == ARROW_DOWN
    assert trend_arrow(50.0, 50.0) == ARROW_FLAT
    assert trend_arrow(None, 50.0) == ARROW_FLAT
    assert trend_arrow(50.0, None) == ARROW_FLAT


def test_format_asset_block_full():
    msg = format_asset_block(
        ETF,
        RSIReading(current=61.42, previous=55.0),
        RSIReading(current=48.0, previous=52.5),
        27.5,
    )

    assert msg.startswith("*📊 ETF S&P500 (ESE)*\n")
    assert f"• *RSI Hebdo* : `61.42` {ARROW_UP}" in msg
    assert f"• *RSI Mensuel* : `48.00` {ARROW_DOWN}" in msg
    assert "• *Prix* : `27.50 €`" in msg
    assert msg.endswith("\n\n")


def test_format_asset_block_missing_data_renders_na():
    msg = format_asset_block(BTC, RSIReading.empty(), None, None)

    assert f"• *RSI Hebdo* : `N/A` {ARROW_FLAT}" in msg
    assert f"• *RSI Mensuel* : `N/A` {ARROW_FLAT}" in msg
    assert "• *Prix* : `N/A $`" in msg


class _Quotes:
    def __init__(self, broken: str) -> None:
        self.broken = broken
        self.order = []

    def price(self, symbol):
        self.order.append(("price", symbol))
        return 1.0

    def rsi(self, symbol, interval):
        self.order.append(("rsi", symbol, interval))
        if symbol == self.broken:
            raise RuntimeError("unexpected")
        return RSIReading(current=50.0, previous=40.0)


def test_build_digest_isolates_asset_failures():
    quotes = _Quotes(broken="ESE.PA")
    msg = build_digest(quotes, [ETF, BTC], date(2024, 9, 13))

    assert msg.startswith("*📅 13/09/2024*\n\n")
    # Broken asset degrades to N/A, the next one is still processed
    assert "*📊 ETF S&P500 (ESE)*\n• *RSI Hebdo* : `N/A`" in msg
    assert f"*📊 Bitcoin*\n• *RSI Hebdo* : `50.00` {ARROW_UP}" in msg
    assert quotes.order[-3:] == [
        ("rsi", "BTC-USD", "weekly"),
        ("rsi", "BTC-USD", "monthly"),
        ("price", "BTC-USD"),
    ]


class _WeeklyBroken:
    def price(self, symbol):
        return 27.5

    def rsi(self, symbol, interval):
        if interval == "weekly":
            raise RuntimeError("unexpected")
        return RSIReading(current=48.0, previous=52.5)


def test_failed_lookup_does_not_skip_the_others():
    msg = build_digest(_WeeklyBroken(), [ETF], date(2024, 9, 13))

    assert f"• *RSI Hebdo* : `N/A` {ARROW_FLAT}" in msg
    assert f"• *RSI Mensuel* : `48.00` {ARROW_DOWN}" in msg
    assert "• *Prix* : `27.50 €`" in msg
