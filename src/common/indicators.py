from __future__ import annotations

import math
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel


DEFAULT_RSI_PERIOD = 14


class RSIReading(BaseModel):
    """
    RSI for the latest complete period and the one before it.

    `None` in either field means insufficient history or a fetch/parse failure.
    """

    current: Optional[float] = None
    previous: Optional[float] = None

    @classmethod
    def empty(cls) -> "RSIReading":
        return cls()


def _validate_period(period: int) -> None:
    if period <= 0:
        raise ValueError("period must be positive")


def clean_closes(values: Iterable[Any]) -> List[float]:
    """Drop missing, non-numeric and non-finite entries, keeping order."""
    out: List[float] = []
    for v in values:
        if v is None or isinstance(v, bool):
            continue
        try:
            f = float(v)
        except (TypeError, ValueError):
            continue
        if math.isfinite(f):
            out.append(f)
    return out


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0.0:
        # rs is infinite with any upward movement; 0/0 is the no-movement case
        return 100.0 if avg_gain > 0.0 else 50.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def rsi(closes: Iterable[Any], period: int = DEFAULT_RSI_PERIOD) -> List[Optional[float]]:
    """Relative Strength Index (Wilder's smoothing).

    - Unusable entries are dropped first; the output is aligned with the
      remaining closes.
    - Computes close-to-close deltas.
    - Initial average gain/loss computed over the first `period` deltas.
    - Then uses Wilder's smoothing: avg = (prev_avg*(period-1) + current)/period.
    - Returns `None` until the first RSI point (index `period`).
    """
    _validate_period(period)
    closes = clean_closes(closes)
    n = len(closes)
    out: List[Optional[float]] = [None] * n
    if n <= period:
        return out

    gains: List[float] = [0.0] * n
    losses: List[float] = [0.0] * n
    for i in range(1, n):
        delta = closes[i] - closes[i - 1]
        if delta >= 0:
            gains[i] = delta
        else:
            losses[i] = -delta

    # Seed averages using the first `period` deltas (indices 1..period)
    avg_gain = sum(gains[1 : period + 1]) / period
    avg_loss = sum(losses[1 : period + 1]) / period
    out[period] = _rsi_from_averages(avg_gain, avg_loss)

    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        out[i] = _rsi_from_averages(avg_gain, avg_loss)

    return out


def compute_rsi(closes: Iterable[Any], period: int = DEFAULT_RSI_PERIOD) -> Optional[float]:
    """RSI of the newest close in `closes` (oldest first), or None.

    Unusable entries are skipped; fewer than `period + 1` remaining closes
    yields None rather than an error.
    """
    _validate_period(period)
    values = clean_closes(closes)
    if len(values) < period + 1:
        return None
    return rsi(values, period)[-1]


def rsi_reading(
    closes: Iterable[Any],
    period: int = DEFAULT_RSI_PERIOD,
    *,
    lookback: Optional[int] = None,
) -> RSIReading:
    """Current and previous RSI from two windows of `lookback` closes.

    `current` uses the newest `lookback` closes (default `period + 1`);
    `previous` uses the window of the same length ending one close earlier.
    Each window is seeded from scratch, so `previous` is not the intermediate
    value of the `current` computation.
    """
    _validate_period(period)
    size = lookback if lookback is not None else period + 1
    if size < period + 1:
        raise ValueError("lookback must be at least period + 1")
    values = clean_closes(closes)
    current = compute_rsi(values[-size:], period)
    previous = compute_rsi(values[:-1][-size:], period) if len(values) > 1 else None
    return RSIReading(current=current, previous=previous)


__all__ = [
    "DEFAULT_RSI_PERIOD",
    "RSIReading",
    "clean_closes",
    "rsi",
    "compute_rsi",
    "rsi_reading",
]
