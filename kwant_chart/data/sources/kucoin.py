"""KuCoin spot and futures klines, paged backward in seconds."""

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

SUCCESS_CODE = "200000"


@register_fetcher
class KucoinFetcher(CandleFetcher):
    exchange = ExchangeId.KUCOIN
    name = "KuCoin"

    SPOT_URL = "https://api.kucoin.com/api/v1/market/candles"
    FUTURES_URL = "https://api-futures.kucoin.com/api/v1/kline/query"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        if request.is_spot:
            url = self.SPOT_URL
            symbol = resolve_symbol(request.asset, request.quote_asset, "-")
        else:
            url = self.FUTURES_URL
            symbol = resolve_symbol(request.asset, request.quote_asset, "", "M")
        start_sec = request.start_sec
        cursor_end = request.end_sec
        candles: List[Candle] = []

        while cursor_end > start_sec:
            raise_if_cancelled(cancel)
            if request.is_spot:
                params = {"symbol": symbol, "type": request.interval, "startAt": start_sec, "endAt": cursor_end}
            else:
                params = {"symbol": symbol, "granularity": request.interval, "from": start_sec, "to": cursor_end}
            payload = await http.get_json(url, params, provider=self.name, cancel=cancel)
            if not isinstance(payload, dict):
                break
            code = payload.get("code")
            if code and str(code) != SUCCESS_CODE:
                raise ProviderError(self.name, code, payload.get("msg"))
            data = payload.get("data")
            rows = data.get("data") if isinstance(data, dict) else data
            if not isinstance(rows, list) or not rows:
                break

            # Rows are [time, open, close, high, low, volume, turnover].
            min_start = cursor_end
            for row in rows:
                start = to_ms(cell(row, 0), scale=1000)
                if start is None:
                    continue
                min_start = min(min_start, start // 1000)
                candles.append(
                    self.make_candle(request, start, cell(row, 1), cell(row, 3), cell(row, 4), cell(row, 2), cell(row, 5))
                )

            if min_start >= cursor_end:
                break
            cursor_end = min_start - 1

        return candles
