"""Kraken spot OHLC and Kraken Futures chart candles."""

from __future__ import annotations

from typing import List, Optional

from kwant_chart.data.cancel import CancelToken, raise_if_cancelled
from kwant_chart.data.errors import ProviderError
from kwant_chart.data.sources.base import (
    CandleFetcher,
    FetchRequest,
    JsonClient,
    cell,
    normalize_symbol_part,
    register_fetcher,
    resolve_symbol,
    to_ms,
)
from kwant_chart.data.types import Candle, ExchangeId


def normalize_kraken_asset(asset: str) -> str:
    upper = normalize_symbol_part(asset)
    return "XBT" if upper == "BTC" else upper


def kraken_symbol(request: FetchRequest) -> str:
    return resolve_symbol(normalize_kraken_asset(request.asset), request.quote_asset, "")


@register_fetcher
class KrakenFetcher(CandleFetcher):
    exchange = ExchangeId.KRAKEN
    name = "Kraken"

    SPOT_URL = "https://api.kraken.com/0/public/OHLC"
    FUTURES_URL = "https://futures.kraken.com/derivatives/api/v3/charts/v1/candles"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        if request.is_spot:
            return await self._fetch_spot(request, http, cancel)
        return await self._fetch_futures(request, http, cancel)

    async def _fetch_spot(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken],
    ) -> List[Candle]:
        pair = kraken_symbol(request)
        since = request.start_sec
        end_sec = request.end_sec
        candles: List[Candle] = []

        while since < end_sec:
            raise_if_cancelled(cancel)
            payload = await http.get_json(
                self.SPOT_URL,
                {"pair": pair, "interval": request.interval, "since": since},
                provider=self.name,
                cancel=cancel,
            )
            if not isinstance(payload, dict):
                break
            errors = payload.get("error") or []
            if errors:
                raise ProviderError(self.name, None, ", ".join(str(e) for e in errors))
            result = payload.get("result") or {}
            # Result is keyed by Kraken's own pair name plus a "last" cursor.
            key = next((k for k in result if k != "last"), None)
            rows = result.get(key) if key else None
            if not isinstance(rows, list) or not rows:
                break

            # Rows are [time, open, high, low, close, vwap, volume, count].
            for row in rows:
                start = to_ms(cell(row, 0), scale=1000)
                if start is None:
                    continue
                candles.append(
                    self.make_candle(
                        request,
                        start,
                        cell(row, 1),
                        cell(row, 2),
                        cell(row, 3),
                        cell(row, 4),
                        cell(row, 6),
                        trades=cell(row, 7),
                    )
                )

            last = to_ms(result.get("last"))
            if last is None or last <= since:
                break
            since = last

        return candles

    async def _fetch_futures(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken],
    ) -> List[Candle]:
        symbol = f"PI_{kraken_symbol(request)}"
        raise_if_cancelled(cancel)
        payload = await http.get_json(
            self.FUTURES_URL,
            {"symbol": symbol, "resolution": request.interval, "from": request.start_sec, "to": request.end_sec},
            provider="Kraken futures",
            cancel=cancel,
        )
        if not isinstance(payload, dict):
            return []
        result = payload.get("result")
        rows = result.get("candles") if isinstance(result, dict) else payload.get("candles")
        candles: List[Candle] = []
        for row in rows or []:
            if not isinstance(row, dict):
                continue
            start = to_ms(row.get("time"), scale=1000)
            if start is None:
                continue
            candles.append(
                self.make_candle(
                    request, start, row.get("open"), row.get("high"), row.get("low"), row.get("close"), row.get("volume")
                )
            )
        return candles
