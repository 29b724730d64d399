"""Resolve, fetch, normalize and aggregate one range of candles."""

from __future__ import annotations

import logging
from typing import List, Optional

from kwant_chart.data.aggregate import aggregate_candles, normalize_candles
from kwant_chart.data.cancel import CancelToken
from kwant_chart.data.intervals import resolve_interval_or_raise
from kwant_chart.data.sources import FetchRequest, get_fetcher
from kwant_chart.data.sources.base import JsonClient, normalize_symbol_part
from kwant_chart.data.types import DEFAULT_QUOTE_ASSET, Candle, DataSource, TimeFrame

logger = logging.getLogger(__name__)


async def fetch_candles(
    source: DataSource,
    asset: str,
    quote_asset: str,
    start_ms: int,
    end_ms: int,
    timeframe: TimeFrame,
    http: JsonClient,
    cancel: Optional[CancelToken] = None,
) -> List[Candle]:
    """Fetch ``[start_ms, end_ms)`` of ``timeframe`` candles from ``source``.

    Raises ``UnsupportedTimeframeError`` when the provider cannot serve the
    timeframe directly or by whole-candle aggregation.
    """
    asset = normalize_symbol_part(asset)
    quote_asset = normalize_symbol_part(quote_asset or DEFAULT_QUOTE_ASSET) or DEFAULT_QUOTE_ASSET
    plan = resolve_interval_or_raise(source, timeframe)
    fetcher = get_fetcher(source.exchange)

    request = FetchRequest(
        source=source,
        asset=asset,
        quote_asset=quote_asset,
        start_ms=start_ms,
        end_ms=end_ms,
        interval=plan.interval,
        interval_label=plan.base_timeframe.label,
        base_interval_ms=plan.base_timeframe.ms,
    )
    raw = await fetcher.fetch(request, http, cancel)
    candles = normalize_candles(raw, start_ms, end_ms)

    if plan.is_direct:
        return [candle.relabel(timeframe.label) for candle in candles]

    logger.debug(
        f"Aggregating {len(candles)} {plan.base_timeframe.label} {source} candles "
        f"into {timeframe.label} (x{plan.group_size})"
    )
    return aggregate_candles(candles, timeframe.ms, asset, timeframe.label)
