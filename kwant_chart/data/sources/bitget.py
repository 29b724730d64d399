"""Bitget spot and USDT-M futures candles (single request)."""

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

SUCCESS_CODE = "00000"


@register_fetcher
class BitgetFetcher(CandleFetcher):
    exchange = ExchangeId.BITGET
    name = "Bitget"

    SPOT_URL = "https://api.bitget.com/api/spot/v1/market/candles"
    FUTURES_URL = "https://api.bitget.com/api/mix/v1/market/candles"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        symbol = resolve_symbol(request.asset, request.quote_asset, "")
        if request.is_spot:
            url = self.SPOT_URL
            params = {"symbol": symbol, "period": request.interval, "startTime": request.start_ms, "endTime": request.end_ms}
        else:
            url = self.FUTURES_URL
            params = {
                "symbol": symbol,
                "granularity": request.interval,
                "startTime": request.start_ms,
                "endTime": request.end_ms,
                "productType": "umcbl",
            }

        raise_if_cancelled(cancel)
        payload = await http.get_json(url, params, provider=self.name, cancel=cancel)
        if isinstance(payload, list):
            rows = payload
        elif isinstance(payload, dict):
            code = payload.get("code")
            if code and str(code) != SUCCESS_CODE:
                raise ProviderError(self.name, code, payload.get("msg"))
            rows = payload.get("data") or []
        else:
            return []
        if not isinstance(rows, list):
            return []

        candles: List[Candle] = []
        for row in rows:
            if isinstance(row, dict):
                # Older spot responses: {ts, open, high, low, close, baseVol}.
                start = to_ms(row.get("ts"))
                values = (row.get("open"), row.get("high"), row.get("low"), row.get("close"), row.get("baseVol"))
            else:
                start = to_ms(cell(row, 0))
                values = (cell(row, 1), cell(row, 2), cell(row, 3), cell(row, 4), cell(row, 5))
            if start is None:
                continue
            candles.append(self.make_candle(request, start, *values))
        return candles
