"""In-memory candle cache with one owner asset per timeframe."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from kwant_chart.data.aggregate import sort_candles
from kwant_chart.data.types import Candle, TimeFrame

logger = logging.getLogger(__name__)

TimeframeCache = Dict[int, Candle]


class CandleCache:
    """Candles keyed by bucket start, one map per timeframe.

    Each timeframe remembers the asset that currently owns its map. Asking for
    a different asset discards the map before handing out a fresh one, so at
    most one asset's candles live under a timeframe at any time.
    """

    def __init__(self) -> None:
        self._maps: Dict[TimeFrame, TimeframeCache] = {}
        self._owners: Dict[TimeFrame, str] = {}

    def get_timeframe_cache(self, timeframe: TimeFrame, asset: str) -> TimeframeCache:
        owner = self._owners.get(timeframe)
        if owner != asset:
            if owner is not None and self._maps.get(timeframe):
                logger.debug(f"Evicting {len(self._maps[timeframe])} {owner} candles from {timeframe.label} cache")
            self._maps[timeframe] = {}
            self._owners[timeframe] = asset
        return self._maps.setdefault(timeframe, {})

    def owner(self, timeframe: TimeFrame) -> Optional[str]:
        return self._owners.get(timeframe)

    def snapshot(self, timeframe: TimeFrame, asset: str) -> List[Candle]:
        """Sorted candles of ``asset`` under ``timeframe`` without touching ownership."""
        tf_cache = self._maps.get(timeframe, {})
        return sort_candles(c for c in tf_cache.values() if c.asset == asset)

    def clear(self) -> None:
        self._maps.clear()
        self._owners.clear()

    def __len__(self) -> int:
        return sum(len(tf_cache) for tf_cache in self._maps.values())
