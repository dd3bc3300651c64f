"""
Common utilities for rsi-digest-bot.

Modules:
- indicators: RSI (Wilder's smoothing) from closing prices
- alpha_vantage: Alpha Vantage API client with throttling
- gateway: TTL cache with stale fallback around provider fetches
- quotes: cached price / RSI lookups per asset
- digest: Markdown digest formatting
- commands, whitelist, telegram: chat-facing glue
"""

__all__ = [
    "alpha_vantage",
    "gateway",
    "indicators",
    "quotes",
    "digest",
]
