"""MEXC spot klines and contract (futures) klines."""

from __future__ import annotations

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
from kwant_chart.data.sources.binance import fetch_klines
from kwant_chart.data.types import Candle, ExchangeId


@register_fetcher
class MexcFetcher(CandleFetcher):
    exchange = ExchangeId.MEXC
    name = "MEXC"

    SPOT_URL = "https://api.mexc.com/api/v3/klines"
    CONTRACT_URL = "https://contract.mexc.com/api/v1/contract/kline"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        if request.is_spot:
            # Spot mirrors the Binance klines API.
            symbol = resolve_symbol(request.asset, request.quote_asset, "")
            return await fetch_klines(
                request, http, cancel, url=self.SPOT_URL, symbol=symbol, limit=1000, provider="MEXC spot"
            )
        return await self._fetch_contract(request, http, cancel)

    async def _fetch_contract(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken],
    ) -> List[Candle]:
        symbol = resolve_symbol(request.asset, request.quote_asset, "_")
        raise_if_cancelled(cancel)
        payload = await http.get_json(
            f"{self.CONTRACT_URL}/{symbol}",
            {"interval": request.interval, "start": request.start_sec, "end": request.end_sec},
            provider="MEXC futures",
            cancel=cancel,
        )
        if not isinstance(payload, dict):
            return []
        if payload.get("success") is False:
            raise ProviderError("MEXC futures", payload.get("code"), payload.get("message"))

        # Column-oriented: {time: [...], open: [...], ...}.
        data = payload.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("time"), list):
            return []

        def column(name: str) -> list:
            values = data.get(name)
            return values if isinstance(values, list) else []

        opens, highs, lows, closes, vols = (column(n) for n in ("open", "high", "low", "close", "vol"))
        candles: List[Candle] = []
        for i, raw_time in enumerate(data["time"]):
            start = to_ms(raw_time, scale=1000)
            if start is None:
                continue
            candles.append(
                self.make_candle(
                    request,
                    start,
                    opens[i] if i < len(opens) else None,
                    highs[i] if i < len(highs) else None,
                    lows[i] if i < len(lows) else None,
                    closes[i] if i < len(closes) else None,
                    vols[i] if i < len(vols) else None,
                )
            )
        return candles
