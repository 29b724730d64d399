"""HTX (Huobi) history klines; one fixed-size request, no cursor."""

from __future__ import annotations

import math
from typing import List, Optional

from kwant_chart.data.cancel import CancelToken, raise_if_cancelled
from kwant_chart.data.errors import ProviderError
from kwant_chart.data.sources.base import (
    CandleFetcher,
    FetchRequest,
    JsonClient,
    register_fetcher,
    resolve_symbol,
    to_ms,
)
from kwant_chart.data.types import Candle, ExchangeId

MAX_SIZE = 2000


def history_size(request: FetchRequest) -> int:
    """Bars to request so the most recent ``MAX_SIZE`` cover the range plus slack."""
    span = math.ceil((request.end_ms - request.start_ms) / request.base_interval_ms)
    return min(MAX_SIZE, max(1, span + 10))


@register_fetcher
class HtxFetcher(CandleFetcher):
    exchange = ExchangeId.HTX
    name = "HTX"

    SPOT_URL = "https://api.huobi.pro/market/history/kline"
    FUTURES_URL = "https://api.hbdm.com/linear-swap-ex/market/history/kline"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        size = history_size(request)
        if request.is_spot:
            url = self.SPOT_URL
            symbol = resolve_symbol(request.asset, request.quote_asset, "", "", lowercase=True)
            params = {"symbol": symbol, "period": request.interval, "size": size}
        else:
            url = self.FUTURES_URL
            symbol = resolve_symbol(request.asset, request.quote_asset, "-")
            params = {"contract_code": symbol, "period": request.interval, "size": size}

        raise_if_cancelled(cancel)
        payload = await http.get_json(url, params, provider=self.name, cancel=cancel)
        if not isinstance(payload, dict):
            return []
        if payload.get("status") == "error":
            raise ProviderError(self.name, payload.get("err-code"), payload.get("err-msg"))

        candles: List[Candle] = []
        for row in payload.get("data") or []:
            if not isinstance(row, dict):
                continue
            start = to_ms(row.get("id"), scale=1000)
            if start is None:
                continue
            volume = row.get("vol")
            if volume is None:
                volume = row.get("amount", 0)
            candles.append(
                self.make_candle(
                    request,
                    start,
                    row.get("open"),
                    row.get("high"),
                    row.get("low"),
                    row.get("close"),
                    volume,
                    trades=row.get("count", 0),
                )
            )
        return candles
