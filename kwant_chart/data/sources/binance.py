"""Binance klines (spot and USD-M futures)."""

from __future__ import annotations

import logging
from typing import List, Optional

from kwant_chart.data.cancel import CancelToken, raise_if_cancelled
from kwant_chart.data.errors import ProviderError
from kwant_chart.data.sources.base import (
    CandleFetcher,
    FetchRequest,
    JsonClient,
    cell,
    register_fetcher,
    resolve_symbol,
    to_ms,
)
from kwant_chart.data.types import Candle, ExchangeId

logger = logging.getLogger(__name__)


async def fetch_klines(
    request: FetchRequest,
    http: JsonClient,
    cancel: Optional[CancelToken],
    *,
    url: str,
    symbol: str,
    limit: int,
    provider: str,
) -> List[Candle]:
    """Page forward through a Binance-shaped ``/klines`` endpoint.

    Rows are ``[open_time, o, h, l, c, volume, close_time, quote_volume,
    trades, ...]`` in ms; close_time is the last millisecond of the bucket.
    """
    candles: List[Candle] = []
    cursor = request.start_ms

    while cursor < request.end_ms:
        raise_if_cancelled(cancel)
        data = await http.get_json(
            url,
            {
                "symbol": symbol,
                "interval": request.interval,
                "startTime": cursor,
                "endTime": request.end_ms,
                "limit": limit,
            },
            provider=provider,
            cancel=cancel,
        )
        if isinstance(data, dict) and data.get("code") not in (None, 0, "0", 200):
            raise ProviderError(provider, data.get("code"), data.get("msg"))
        if not isinstance(data, list) or not data:
            break

        for row in data:
            start = to_ms(cell(row, 0))
            if start is None:
                continue
            close_time = to_ms(cell(row, 6))
            candles.append(
                CandleFetcher.make_candle(
                    request,
                    start,
                    cell(row, 1),
                    cell(row, 2),
                    cell(row, 3),
                    cell(row, 4),
                    cell(row, 5),
                    trades=cell(row, 8),
                    end=close_time + 1 if close_time else None,
                )
            )

        last_start = to_ms(cell(data[-1], 0))
        if last_start is None or last_start <= cursor:
            break
        cursor = last_start + 1
        if len(data) < limit:
            break

    logger.debug(f"{provider}: {len(candles)} candles for {symbol} {request.interval}")
    return candles


@register_fetcher
class BinanceFetcher(CandleFetcher):
    exchange = ExchangeId.BINANCE
    name = "Binance"

    SPOT_URL = "https://api.binance.com/api/v3/klines"
    FUTURES_URL = "https://fapi.binance.com/fapi/v1/klines"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        symbol = resolve_symbol(request.asset, request.quote_asset, "")
        if request.is_spot:
            return await fetch_klines(
                request, http, cancel, url=self.SPOT_URL, symbol=symbol, limit=1000, provider="Binance spot"
            )
        return await fetch_klines(
            request, http, cancel, url=self.FUTURES_URL, symbol=symbol, limit=1500, provider="Binance futures"
        )
