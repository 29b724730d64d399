"""Coinbase Advanced Trade product candles (spot only)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from kwant_chart.data.cancel import CancelToken, raise_if_cancelled
from kwant_chart.data.errors import ProviderError, UnsupportedSourceError
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


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_start(value: Any) -> Optional[int]:
    """Object candles carry either epoch seconds or an ISO-8601 string."""
    if isinstance(value, str):
        parsed = to_ms(value, scale=1000)
        if parsed is not None:
            return parsed
        try:
            dt_value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt_value.tzinfo is None:
            dt_value = dt_value.replace(tzinfo=timezone.utc)
        return int(dt_value.timestamp() * 1000)
    return to_ms(value, scale=1000)


@register_fetcher
class CoinbaseFetcher(CandleFetcher):
    exchange = ExchangeId.COINBASE
    name = "Coinbase"

    PRODUCTS_URL = "https://api.coinbase.com/api/v3/brokerage/products"

    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        if not request.is_spot:
            raise UnsupportedSourceError(self.exchange.value, request.source.market.value)
        product_id = resolve_symbol(request.asset, request.quote_asset, "-")

        raise_if_cancelled(cancel)
        payload = await http.get_json(
            f"{self.PRODUCTS_URL}/{product_id}/candles",
            {"granularity": request.interval, "start": _iso(request.start_ms), "end": _iso(request.end_ms)},
            provider=self.name,
            cancel=cancel,
        )
        if not isinstance(payload, dict):
            return []
        if payload.get("error"):
            raise ProviderError(self.name, payload.get("error"), payload.get("message"))

        candles: List[Candle] = []
        for entry in payload.get("candles") or []:
            if isinstance(entry, dict):
                start = _parse_start(entry.get("start"))
                if start is None:
                    continue
                candles.append(
                    self.make_candle(
                        request,
                        start,
                        entry.get("open"),
                        entry.get("high"),
                        entry.get("low"),
                        entry.get("close"),
                        entry.get("volume"),
                    )
                )
                continue
            # Array form: [time, low, high, open, close, volume].
            start = to_ms(cell(entry, 0), scale=1000)
            if start is None:
                continue
            candles.append(
                self.make_candle(request, start, cell(entry, 3), cell(entry, 2), cell(entry, 1), cell(entry, 4), cell(entry, 5))
            )
        return candles
