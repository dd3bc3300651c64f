from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol, Sequence

from .assets import AssetDescriptor
from .indicators import RSIReading
from .logging import get_logger


log = get_logger(__name__)

ARROW_UP = "⬈"
ARROW_DOWN = "⬊"
ARROW_FLAT = "➞"
NOT_AVAILABLE = "N/A"


class QuoteSource(Protocol):
    def price(self, symbol: str) -> Optional[float]:
        ...

    def rsi(self, symbol: str, interval: str) -> RSIReading:
        ...


def trend_arrow(current: Optional[float], previous: Optional[float]) -> str:
    """Up/down arrow from the RSI move; neutral when equal or data is missing."""
    if current is None or previous is None:
        return ARROW_FLAT
    if current > previous:
        return ARROW_UP
    if current < previous:
        return ARROW_DOWN
    return ARROW_FLAT


def _fmt_number(value: Optional[float], decimals: int = 2) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.{decimals}f}"


def format_asset_block(
    asset: AssetDescriptor,
    weekly: Optional[RSIReading],
    monthly: Optional[RSIReading],
    price: Optional[float],
) -> str:
    """Return the Markdown block for one asset.

    Missing readings or price render as N/A with a neutral arrow.
    """
    w = weekly or RSIReading.empty()
    m = monthly or RSIReading.empty()
    lines = [
        f"*📊 {asset.display_name}*",
        f"• *RSI Hebdo* : `{_fmt_number(w.current)}` {trend_arrow(w.current, w.previous)}",
        f"• *RSI Mensuel* : `{_fmt_number(m.current)}` {trend_arrow(m.current, m.previous)}",
        f"• *Prix* : `{_fmt_number(price)} {asset.currency_symbol}`",
    ]
    return "\n".join(lines) + "\n\n"


def format_digest(blocks: Iterable[str], day: date) -> str:
    header = f"*📅 {day.strftime('%d/%m/%Y')}*\n\n"
    return header + "".join(blocks)


def build_asset_block(quotes: QuoteSource, asset: AssetDescriptor) -> str:
    """Fetch and format one asset; each failed lookup degrades to N/A on its own."""
    weekly: Optional[RSIReading] = None
    monthly: Optional[RSIReading] = None
    price: Optional[float] = None
    try:
        weekly = quotes.rsi(asset.symbol, "weekly")
    except Exception:
        log.exception("asset_quote_failed", symbol=asset.symbol, lookup="rsi_weekly")
    try:
        monthly = quotes.rsi(asset.symbol, "monthly")
    except Exception:
        log.exception("asset_quote_failed", symbol=asset.symbol, lookup="rsi_monthly")
    try:
        price = quotes.price(asset.symbol)
    except Exception:
        log.exception("asset_quote_failed", symbol=asset.symbol, lookup="price")
    return format_asset_block(asset, weekly, monthly, price)


def build_digest(quotes: QuoteSource, assets: Sequence[AssetDescriptor], day: date) -> str:
    """Digest for `assets`, fetched strictly one asset after another."""
    return format_digest((build_asset_block(quotes, a) for a in assets), day)


__all__ = [
    "ARROW_DOWN",
    "ARROW_FLAT",
    "ARROW_UP",
    "NOT_AVAILABLE",
    "QuoteSource",
    "build_asset_block",
    "build_digest",
    "format_asset_block",
    "format_digest",
    "trend_arrow",
]
