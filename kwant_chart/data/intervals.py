"""Provider interval registry and timeframe resolution."""

from __future__ import annotations

from typing import Mapping, Optional

from kwant_chart.data.errors import UnsupportedSourceError, UnsupportedTimeframeError
from kwant_chart.data.types import (
    DataSource,
    ExchangeId,
    IntervalPlan,
    MarketType,
    TimeFrame,
)

IntervalMap = Mapping[TimeFrame, str]

TF = TimeFrame

BINANCE_INTERVALS: IntervalMap = {
    TF.MIN1: "1m",
    TF.MIN3: "3m",
    TF.MIN5: "5m",
    TF.MIN15: "15m",
    TF.MIN30: "30m",
    TF.HOUR1: "1h",
    TF.HOUR2: "2h",
    TF.HOUR4: "4h",
    TF.HOUR12: "12h",
    TF.DAY1: "1d",
    TF.DAY3: "3d",
    TF.WEEK: "1w",
    TF.MONTH: "1M",
}

BYBIT_INTERVALS: IntervalMap = {
    TF.MIN1: "1",
    TF.MIN3: "3",
    TF.MIN5: "5",
    TF.MIN15: "15",
    TF.MIN30: "30",
    TF.HOUR1: "60",
    TF.HOUR2: "120",
    TF.HOUR4: "240",
    TF.HOUR12: "720",
    TF.DAY1: "D",
    TF.WEEK: "W",
    TF.MONTH: "M",
}

OKX_INTERVALS: IntervalMap = {
    TF.MIN1: "1m",
    TF.MIN3: "3m",
    TF.MIN5: "5m",
    TF.MIN15: "15m",
    TF.MIN30: "30m",
    TF.HOUR1: "1H",
    TF.HOUR2: "2H",
    TF.HOUR4: "4H",
    TF.HOUR12: "12H",
    TF.DAY1: "1D",
    TF.DAY3: "3D",
    TF.WEEK: "1W",
    TF.MONTH: "1M",
}

KUCOIN_SPOT_INTERVALS: IntervalMap = {
    TF.MIN1: "1min",
    TF.MIN3: "3min",
    TF.MIN5: "5min",
    TF.MIN15: "15min",
    TF.MIN30: "30min",
    TF.HOUR1: "1hour",
    TF.HOUR2: "2hour",
    TF.HOUR4: "4hour",
    TF.HOUR12: "12hour",
    TF.DAY1: "1day",
    TF.WEEK: "1week",
    TF.MONTH: "1month",
}

# Granularity in seconds.
SECONDS_INTERVALS: IntervalMap = {tf: str(tf.ms // 1000) for tf in TimeFrame}

GATEIO_INTERVALS: IntervalMap = dict(BINANCE_INTERVALS)

COINBASE_SPOT_INTERVALS: IntervalMap = {
    TF.MIN1: "60",
    TF.MIN5: "300",
    TF.MIN15: "900",
    TF.HOUR1: "3600",
    TF.DAY1: "86400",
}

# Minutes.
KRAKEN_INTERVALS: IntervalMap = {
    TF.MIN1: "1",
    TF.MIN5: "5",
    TF.MIN15: "15",
    TF.MIN30: "30",
    TF.HOUR1: "60",
    TF.HOUR4: "240",
    TF.DAY1: "1440",
    TF.WEEK: "10080",
}

BITGET_SPOT_INTERVALS: IntervalMap = {
    TF.MIN1: "1min",
    TF.MIN5: "5min",
    TF.MIN15: "15min",
    TF.MIN30: "30min",
    TF.HOUR1: "1h",
    TF.HOUR4: "4h",
    TF.DAY1: "1day",
    TF.WEEK: "1week",
    TF.MONTH: "1month",
}

HTX_INTERVALS: IntervalMap = {
    TF.MIN1: "1min",
    TF.MIN5: "5min",
    TF.MIN15: "15min",
    TF.MIN30: "30min",
    TF.HOUR1: "60min",
    TF.HOUR4: "4hour",
    TF.DAY1: "1day",
    TF.WEEK: "1week",
    TF.MONTH: "1mon",
}

MEXC_SPOT_INTERVALS: IntervalMap = {
    TF.MIN1: "1m",
    TF.MIN5: "5m",
    TF.MIN15: "15m",
    TF.MIN30: "30m",
    TF.HOUR1: "60m",
    TF.HOUR4: "4h",
    TF.DAY1: "1d",
    TF.WEEK: "1w",
    TF.MONTH: "1M",
}

MEXC_FUTURES_INTERVALS: IntervalMap = {
    TF.MIN1: "Min1",
    TF.MIN5: "Min5",
    TF.MIN15: "Min15",
    TF.MIN30: "Min30",
    TF.HOUR1: "Min60",
    TF.HOUR4: "Hour4",
    TF.DAY1: "Day1",
    TF.WEEK: "Week1",
    TF.MONTH: "Month1",
}

EXCHANGE_INTERVALS: dict[ExchangeId, dict[MarketType, IntervalMap]] = {
    ExchangeId.BINANCE: {MarketType.SPOT: BINANCE_INTERVALS, MarketType.FUTURES: BINANCE_INTERVALS},
    ExchangeId.BYBIT: {MarketType.SPOT: BYBIT_INTERVALS, MarketType.FUTURES: BYBIT_INTERVALS},
    ExchangeId.OKX: {MarketType.SPOT: OKX_INTERVALS, MarketType.FUTURES: OKX_INTERVALS},
    ExchangeId.KUCOIN: {MarketType.SPOT: KUCOIN_SPOT_INTERVALS, MarketType.FUTURES: SECONDS_INTERVALS},
    ExchangeId.GATEIO: {MarketType.SPOT: GATEIO_INTERVALS, MarketType.FUTURES: GATEIO_INTERVALS},
    ExchangeId.COINBASE: {MarketType.SPOT: COINBASE_SPOT_INTERVALS, MarketType.FUTURES: {}},
    ExchangeId.KRAKEN: {MarketType.SPOT: KRAKEN_INTERVALS, MarketType.FUTURES: KRAKEN_INTERVALS},
    ExchangeId.BITGET: {MarketType.SPOT: BITGET_SPOT_INTERVALS, MarketType.FUTURES: SECONDS_INTERVALS},
    ExchangeId.HTX: {MarketType.SPOT: HTX_INTERVALS, MarketType.FUTURES: HTX_INTERVALS},
    ExchangeId.MEXC: {MarketType.SPOT: MEXC_SPOT_INTERVALS, MarketType.FUTURES: MEXC_FUTURES_INTERVALS},
}

EXCHANGE_LABELS: dict[ExchangeId, str] = {
    ExchangeId.BINANCE: "Binance",
    ExchangeId.BYBIT: "Bybit",
    ExchangeId.OKX: "OKX",
    ExchangeId.COINBASE: "Coinbase",
    ExchangeId.KRAKEN: "Kraken",
    ExchangeId.KUCOIN: "KuCoin",
    ExchangeId.BITGET: "Bitget",
    ExchangeId.GATEIO: "Gate.io",
    ExchangeId.HTX: "HTX",
    ExchangeId.MEXC: "MEXC",
}


def _market_intervals(source: DataSource) -> Optional[IntervalMap]:
    markets = EXCHANGE_INTERVALS.get(source.exchange)
    if markets is None:
        return None
    return markets.get(source.market)


def supported_markets(exchange: ExchangeId) -> list[MarketType]:
    """Markets with at least one native interval for ``exchange``."""
    markets = EXCHANGE_INTERVALS.get(exchange, {})
    return [market for market in MarketType if markets.get(market)]


def native_timeframes(source: DataSource) -> list[TimeFrame]:
    intervals = _market_intervals(source) or {}
    return [tf for tf in TimeFrame if intervals.get(tf)]


def resolve_interval(source: DataSource, timeframe: TimeFrame) -> Optional[IntervalPlan]:
    """Map a logical timeframe to a provider interval, synthesizing when needed.

    A direct registry entry is used as-is. Otherwise the largest supported
    timeframe whose duration evenly divides the requested one becomes the
    aggregation base, so every output bucket is built from whole candles.
    Returns ``None`` when nothing fits.
    """
    intervals = _market_intervals(source)
    if not intervals:
        return None

    direct = intervals.get(timeframe)
    if direct:
        return IntervalPlan(interval=direct, base_timeframe=timeframe, group_size=1)

    target_ms = timeframe.ms
    best: Optional[TimeFrame] = None
    for candidate, interval in intervals.items():
        if not interval:
            continue
        base_ms = candidate.ms
        if base_ms > target_ms or target_ms % base_ms != 0:
            continue
        if best is None or base_ms > best.ms:
            best = candidate

    if best is None:
        return None
    return IntervalPlan(
        interval=intervals[best],
        base_timeframe=best,
        group_size=target_ms // best.ms,
    )


def resolve_interval_or_raise(source: DataSource, timeframe: TimeFrame) -> IntervalPlan:
    plan = resolve_interval(source, timeframe)
    if plan is not None:
        return plan
    if source.exchange not in EXCHANGE_INTERVALS:
        raise UnsupportedSourceError(source.exchange.value)
    raise UnsupportedTimeframeError(source.exchange.value, source.market.value, timeframe.value)


def is_timeframe_supported(source: DataSource, timeframe: TimeFrame) -> bool:
    return resolve_interval(source, timeframe) is not None


def supported_timeframes(source: DataSource) -> list[TimeFrame]:
    """Every timeframe that resolves for ``source``, natively or by aggregation."""
    return [tf for tf in TimeFrame if is_timeframe_supported(source, tf)]
