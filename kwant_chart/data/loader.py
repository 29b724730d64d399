"""Gap-filling candle loader backed by the in-memory cache."""

from __future__ import annotations

import bisect
import logging
import math
import time
from typing import Callable, List, Optional, Tuple

from kwant_chart.data.aggregate import sort_candles
from kwant_chart.data.cache import CandleCache, TimeframeCache
from kwant_chart.data.cancel import CancelToken, raise_if_cancelled
from kwant_chart.data.http import HttpClient
from kwant_chart.data.intervals import resolve_interval_or_raise
from kwant_chart.data.pipeline import fetch_candles
from kwant_chart.data.sources.base import JsonClient
from kwant_chart.data.types import ONE_DAY_MS, Candle, DataSource, Gap, TimeFrame
from kwant_chart.data.validation import candle_issues, validate_candles
from kwant_chart.utils.config import LoaderSettings

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[List[Candle]], None]

# Native candles for these timeframes follow the calendar, not the epoch grid.
OFF_GRID_TIMEFRAMES = frozenset({TimeFrame.DAY3, TimeFrame.WEEK, TimeFrame.MONTH})
OFF_GRID_LOOKBACK_BUCKETS = 2


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_range(start_ms: int, end_ms: int, bucket_ms: int) -> Tuple[int, int]:
    """Snap ``[start_ms, end_ms)`` outward to whole buckets, at least one bucket wide."""
    clamped_start = max(0, start_ms)
    start = clamped_start - (clamped_start % bucket_ms)
    end = max(start + bucket_ms, math.ceil(end_ms / bucket_ms) * bucket_ms)
    return start, end


def covering_lookup(tf_cache: TimeframeCache, asset: str) -> Callable[[int], Optional[Candle]]:
    """Find the cached candle whose ``[start, end)`` contains a timestamp."""
    candles = cache_to_list(tf_cache, asset)
    starts = [c.start for c in candles]

    def lookup(ts: int) -> Optional[Candle]:
        index = bisect.bisect_right(starts, ts) - 1
        if index >= 0 and ts < candles[index].end:
            return candles[index]
        return None

    return lookup


def collect_cached(
    tf_cache: TimeframeCache,
    asset: str,
    start_ms: int,
    end_ms: int,
    bucket_ms: int,
    exact: bool = True,
) -> Tuple[List[Candle], List[Gap]]:
    """Walk the bucket grid, splitting it into cached candles and missing runs.

    Each contiguous run of absent buckets becomes one ``Gap``, so a long hole
    is fetched with as few provider requests as pagination allows. With
    ``exact=False`` a bucket counts as cached when any cached candle covers it,
    for provider candles that do not sit on the epoch grid (weeks starting on
    Monday, calendar months).
    """
    lookup = tf_cache.get if exact else covering_lookup(tf_cache, asset)
    cached: List[Candle] = []
    gaps: List[Gap] = []
    gap_start: Optional[int] = None

    for ts in range(start_ms, end_ms, bucket_ms):
        candle = lookup(ts)
        if candle is not None and candle.asset == asset:
            if not cached or cached[-1] is not candle:
                cached.append(candle)
            if gap_start is not None:
                gaps.append(Gap(gap_start, ts))
                gap_start = None
        elif gap_start is None:
            gap_start = ts

    if gap_start is not None:
        gaps.append(Gap(gap_start, end_ms))
    return cached, gaps


def cache_to_list(tf_cache: TimeframeCache, asset: str) -> List[Candle]:
    return sort_candles(c for c in tf_cache.values() if c.asset == asset)


class CandleLoader:
    """Serves chart candle requests from cache, fetching only the missing gaps.

    Gaps are fetched one after another. A new request for the same chart is
    expected to cancel the previous ``CancelToken``; the loader itself does not
    serialize calls.
    """

    def __init__(
        self,
        cache: Optional[CandleCache] = None,
        http: Optional[JsonClient] = None,
        settings: Optional[LoaderSettings] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings or LoaderSettings()
        self.cache = cache if cache is not None else CandleCache()
        self.http = http if http is not None else HttpClient(timeout=self.settings.request_timeout)
        self.clock = clock

    def expand_range(self, start_ms: int, end_ms: int, bucket_ms: int) -> Tuple[int, int]:
        """Pad the visible range with prefetch buckets and clamp it to now."""
        buffer_ms = self.settings.prefetch_buckets * bucket_ms
        now = self.clock()
        range_start = max(0, start_ms - buffer_ms)
        range_end = min(now, end_ms + buffer_ms)
        if not range_start or not range_end or range_end <= range_start:
            range_end = now
            range_start = range_end - self.settings.default_window_days * ONE_DAY_MS
        return range_start, range_end

    async def load_candles(
        self,
        source: DataSource,
        timeframe: TimeFrame,
        start_ms: int,
        end_ms: int,
        asset: str,
        quote_asset: Optional[str] = None,
        on_cache_snapshot: Optional[SnapshotCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        if not asset or not asset.strip():
            return []

        asset = asset.strip().upper()
        quote_asset = (quote_asset or "").strip().upper() or self.settings.default_quote_asset
        bucket_ms = timeframe.ms
        plan = resolve_interval_or_raise(source, timeframe)
        off_grid = plan.is_direct and timeframe in OFF_GRID_TIMEFRAMES

        range_start, range_end = self.expand_range(start_ms, end_ms, bucket_ms)
        aligned_start, aligned_end = normalize_range(range_start, range_end, bucket_ms)

        tf_cache = self.cache.get_timeframe_cache(timeframe, asset)
        cached, gaps = collect_cached(tf_cache, asset, aligned_start, aligned_end, bucket_ms, exact=not off_grid)

        if on_cache_snapshot is not None:
            on_cache_snapshot(cache_to_list(tf_cache, asset))

        if not gaps and cached:
            return cache_to_list(tf_cache, asset)

        logger.info(
            f"{source} {asset}/{quote_asset} {timeframe.label}: {len(cached)} cached, "
            f"fetching {len(gaps)} gap(s)"
        )
        for gap in gaps:
            raise_if_cancelled(cancel)
            fetch_start = gap.start
            if off_grid:
                # Reach back far enough to pick up the candle that opened before the gap.
                fetch_start = max(0, gap.start - OFF_GRID_LOOKBACK_BUCKETS * bucket_ms)
            candles = await fetch_candles(
                source,
                asset,
                quote_asset,
                fetch_start,
                gap.end,
                timeframe,
                self.http,
                cancel,
            )
            self._check_quality(candles, source, asset, timeframe)
            for candle in candles:
                tf_cache[candle.start] = candle
            logger.debug(f"Cached {len(candles)} {timeframe.label} candles for gap [{gap.start}, {gap.end})")

        return cache_to_list(tf_cache, asset)

    def _check_quality(self, candles: List[Candle], source: DataSource, asset: str, timeframe: TimeFrame) -> None:
        if self.settings.strict_validation:
            validate_candles(candles)
            return
        issues = candle_issues(candles)
        if issues:
            logger.warning(f"{source} {asset} {timeframe.label} data quality: {'; '.join(issues)}")

    def clear_cache(self) -> None:
        self.cache.clear()

    async def close(self) -> None:
        close = getattr(self.http, "close", None)
        if close is not None:
            await close()


_default_loader: Optional[CandleLoader] = None


def get_default_loader() -> CandleLoader:
    global _default_loader
    if _default_loader is None:
        _default_loader = CandleLoader(settings=LoaderSettings.from_env())
    return _default_loader


async def load_candles(
    source: DataSource,
    timeframe: TimeFrame,
    start_ms: int,
    end_ms: int,
    asset: str,
    quote_asset: Optional[str] = None,
    on_cache_snapshot: Optional[SnapshotCallback] = None,
    cancel: Optional[CancelToken] = None,
) -> List[Candle]:
    """Module-level entry point using the process-wide default loader."""
    return await get_default_loader().load_candles(
        source, timeframe, start_ms, end_ms, asset, quote_asset, on_cache_snapshot, cancel
    )
