"""OKX v5 candles, paged backward from the range end.

OKX's ``after`` parameter returns records older than the given timestamp.
"""

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

PAGE_LIMIT = 100


@register_fetcher
class OkxFetcher(CandleFetcher):
    exchange = ExchangeId.OKX
    name = "OKX"

    CANDLES_URL = "https://www.okx.com/api/v5/market/candles"

    @staticmethod
    def instrument_id(request: FetchRequest) -> str:
        inst_id = resolve_symbol(request.asset, request.quote_asset, "-")
        return inst_id if request.is_spot else f"{inst_id}-SWAP"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        inst_id = self.instrument_id(request)
        candles: List[Candle] = []
        cursor = request.end_ms

        while cursor > request.start_ms:
            raise_if_cancelled(cancel)
            payload = await http.get_json(
                self.CANDLES_URL,
                {"instId": inst_id, "bar": request.interval, "after": cursor, "limit": PAGE_LIMIT},
                provider=self.name,
                cancel=cancel,
            )
            if not isinstance(payload, dict):
                break
            code = payload.get("code")
            if code and str(code) != "0":
                raise ProviderError(self.name, code, payload.get("msg"))
            rows = payload.get("data") or []
            if not isinstance(rows, list) or not rows:
                break

            min_start = cursor
            for row in rows:
                start = to_ms(cell(row, 0))
                if start is None:
                    continue
                min_start = min(min_start, start)
                candles.append(
                    self.make_candle(request, start, cell(row, 1), cell(row, 2), cell(row, 3), cell(row, 4), cell(row, 5))
                )

            if min_start >= cursor:
                break
            cursor = min_start - 1
            if len(rows) < PAGE_LIMIT:
                break

        return candles
