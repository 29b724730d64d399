"""Bybit v5 kline feed.

``/v5/market/kline`` answers with the newest ``limit`` rows inside
``[start, end]``, newest first, so long ranges are paged backward from the end.
"""

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

MAX_KLINE_BATCH = 1000


@register_fetcher
class BybitFetcher(CandleFetcher):
    exchange = ExchangeId.BYBIT
    name = "Bybit"

    KLINE_URL = "https://api.bybit.com/v5/market/kline"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        symbol = resolve_symbol(request.asset, request.quote_asset, "")
        category = "spot" if request.is_spot else "linear"
        candles: List[Candle] = []
        current_end = request.end_ms

        while current_end > request.start_ms:
            raise_if_cancelled(cancel)
            payload = await http.get_json(
                self.KLINE_URL,
                {
                    "category": category,
                    "symbol": symbol,
                    "interval": request.interval,
                    "start": request.start_ms,
                    "end": current_end,
                    "limit": MAX_KLINE_BATCH,
                },
                provider=self.name,
                cancel=cancel,
            )
            if not isinstance(payload, dict):
                break
            ret_code = payload.get("retCode")
            if ret_code:
                raise ProviderError(self.name, ret_code, payload.get("retMsg"))
            rows = (payload.get("result") or {}).get("list") or []
            if not isinstance(rows, list) or not rows:
                break

            earliest = current_end
            for row in rows:
                start = to_ms(cell(row, 0))
                if start is None:
                    continue
                earliest = min(earliest, start)
                candles.append(
                    self.make_candle(request, start, cell(row, 1), cell(row, 2), cell(row, 3), cell(row, 4), cell(row, 5))
                )

            if earliest >= current_end:
                logger.warning(f"{self.name} pagination stalled at {current_end} for {symbol} {request.interval}")
                break
            if earliest <= request.start_ms or len(rows) < MAX_KLINE_BATCH:
                break
            current_end = earliest - 1

        return candles
