"""Range clipping, deduplication and OHLCV roll-up."""

from __future__ import annotations

from typing import Iterable, List

from kwant_chart.data.types import Candle


def sort_candles(candles: Iterable[Candle]) -> List[Candle]:
    return sorted(candles, key=lambda candle: candle.start)


def dedupe_candles(candles: Iterable[Candle]) -> List[Candle]:
    """Keep one candle per ``start``; the last one seen wins."""
    by_start: dict[int, Candle] = {}
    for candle in candles:
        by_start[candle.start] = candle
    return list(by_start.values())


def normalize_candles(raw: Iterable[Candle], start_ms: int, end_ms: int) -> List[Candle]:
    """Clip to candles overlapping ``[start_ms, end_ms)``, dedupe and sort ascending."""
    clipped = (c for c in raw if c.end > start_ms and c.start < end_ms)
    return sort_candles(dedupe_candles(clipped))


def aggregate_candles(
    candles: Iterable[Candle],
    target_ms: int,
    asset: str,
    interval_label: str,
) -> List[Candle]:
    """Roll base candles up into ``target_ms`` buckets aligned to the epoch.

    Input is sorted first so the bucket close is the close of the latest
    candle. Volume and trade counts are summed.
    """
    out: List[Candle] = []
    bucket_start: int | None = None
    open_ = high = low = close = volume = 0.0
    trades = 0

    def flush() -> None:
        out.append(
            Candle(
                start=bucket_start,
                end=bucket_start + target_ms,
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=volume,
                trades=trades,
                asset=asset,
                interval=interval_label,
            )
        )

    for candle in sort_candles(candles):
        start = (candle.start // target_ms) * target_ms
        if bucket_start is None or start != bucket_start:
            if bucket_start is not None:
                flush()
            bucket_start = start
            open_, high, low, close = candle.open, candle.high, candle.low, candle.close
            volume = candle.volume
            trades = candle.trades
            continue
        high = max(high, candle.high)
        low = min(low, candle.low)
        close = candle.close
        volume += candle.volume
        trades += candle.trades

    if bucket_start is not None:
        flush()
    return out
