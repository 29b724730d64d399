"""Gate.io v4 candlesticks (spot and USDT futures)."""

from __future__ import annotations

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

PAGE_LIMIT = 1000


@register_fetcher
class GateioFetcher(CandleFetcher):
    exchange = ExchangeId.GATEIO
    name = "Gate.io"

    SPOT_URL = "https://api.gateio.ws/api/v4/spot/candlesticks"
    FUTURES_URL = "https://api.gateio.ws/api/v4/futures/usdt/candlesticks"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        symbol = resolve_symbol(request.asset, request.quote_asset, "_")
        url = self.SPOT_URL if request.is_spot else self.FUTURES_URL
        symbol_key = "currency_pair" if request.is_spot else "contract"
        start_sec = request.start_sec
        cursor_end = request.end_sec
        candles: List[Candle] = []

        while cursor_end > start_sec:
            raise_if_cancelled(cancel)
            payload = await http.get_json(
                url,
                {
                    symbol_key: symbol,
                    "interval": request.interval,
                    "from": start_sec,
                    "to": cursor_end,
                    "limit": PAGE_LIMIT,
                },
                provider=self.name,
                cancel=cancel,
            )
            if isinstance(payload, dict) and payload.get("label"):
                raise ProviderError(self.name, payload.get("label"), payload.get("message"))
            if not isinstance(payload, list) or not payload:
                break

            min_start = cursor_end
            for row in payload:
                if isinstance(row, dict):
                    # Futures rows: {t, v, c, h, l, o}.
                    start = to_ms(row.get("t"), scale=1000)
                    values = (row.get("o"), row.get("h"), row.get("l"), row.get("c"), row.get("v"))
                else:
                    # Spot rows: [t, quote_volume, close, high, low, open, base_volume, closed].
                    start = to_ms(cell(row, 0), scale=1000)
                    values = (cell(row, 5), cell(row, 3), cell(row, 4), cell(row, 2), cell(row, 1))
                if start is None:
                    continue
                min_start = min(min_start, start // 1000)
                candles.append(self.make_candle(request, start, *values))

            if min_start >= cursor_end:
                break
            cursor_end = min_start - 1
            if len(payload) < PAGE_LIMIT:
                break

        return candles
