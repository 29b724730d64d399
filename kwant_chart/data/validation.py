"""Validation and DataFrame helpers for fetched candles."""

from __future__ import annotations

from typing import Iterable, List, Sequence

import pandas as pd

from kwant_chart.data.types import Candle

FRAME_COLUMNS = ["open", "high", "low", "close", "volume", "trades"]


class DataValidationError(ValueError):
    """Raised when fetched candles fail data-quality checks in strict mode."""


def candles_to_frame(candles: Iterable[Candle]) -> pd.DataFrame:
    """OHLCV frame indexed by UTC bucket start, as consumed by the backtest panel."""
    rows = [
        {
            "timestamp": candle.start,
            "open": candle.open,
            "high": candle.high,
            "low": candle.low,
            "close": candle.close,
            "volume": candle.volume,
            "trades": candle.trades,
        }
        for candle in candles
    ]
    if not rows:
        frame = pd.DataFrame(columns=FRAME_COLUMNS)
        frame.index = pd.DatetimeIndex([], tz="UTC", name="timestamp")
        return frame
    frame = pd.DataFrame(rows)
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], unit="ms", utc=True)
    return frame.set_index("timestamp").sort_index()


def candle_issues(candles: Sequence[Candle]) -> List[str]:
    """Describe every data-quality problem found; empty when the candles are clean."""
    if not candles:
        return []
    frame = candles_to_frame(candles)
    issues: List[str] = []

    prices = frame[["open", "high", "low", "close"]]
    missing = int(prices.isna().any(axis=1).sum())
    if missing:
        issues.append(f"{missing} candle(s) with unparseable prices")

    high_cap = frame[["open", "close"]].max(axis=1)
    low_cap = frame[["open", "close"]].min(axis=1)
    if (frame["high"] < high_cap).any():
        issues.append("high price below max(open, close)")
    if (frame["low"] > low_cap).any():
        issues.append("low price above min(open, close)")
    if (frame["volume"] < 0).any():
        issues.append("negative volume")
    if frame.index.has_duplicates:
        issues.append("duplicate timestamps")
    if (pd.Series([c.end - c.start for c in candles]) <= 0).any():
        issues.append("candle end not after start")
    return issues


def validate_candles(candles: Sequence[Candle]) -> Sequence[Candle]:
    """Return ``candles`` unchanged or raise ``DataValidationError`` listing the problems."""
    issues = candle_issues(candles)
    if issues:
        raise DataValidationError("; ".join(issues))
    return candles
