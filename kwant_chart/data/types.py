"""Core data-layer types for kwant chart candles."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

ONE_MINUTE_MS = 60_000
ONE_DAY_MS = 24 * 60 * ONE_MINUTE_MS

DEFAULT_QUOTE_ASSET = "USDT"


class ExchangeId(str, Enum):
    BINANCE = "binance"
    BYBIT = "bybit"
    OKX = "okx"
    COINBASE = "coinbase"
    KRAKEN = "kraken"
    KUCOIN = "kucoin"
    BITGET = "bitget"
    GATEIO = "gateio"
    HTX = "htx"
    MEXC = "mexc"


class MarketType(str, Enum):
    SPOT = "spot"
    FUTURES = "futures"


class TimeFrame(str, Enum):
    """Logical candle granularity, independent of any provider vocabulary."""

    MIN1 = "min1"
    MIN3 = "min3"
    MIN5 = "min5"
    MIN15 = "min15"
    MIN30 = "min30"
    HOUR1 = "hour1"
    HOUR2 = "hour2"
    HOUR4 = "hour4"
    HOUR12 = "hour12"
    DAY1 = "day1"
    DAY3 = "day3"
    WEEK = "week"
    MONTH = "month"

    @property
    def ms(self) -> int:
        return TIMEFRAME_MS[self]

    @property
    def label(self) -> str:
        return TIMEFRAME_LABELS[self]

    @classmethod
    def parse(cls, value: str | "TimeFrame") -> "TimeFrame":
        """Accept either the enum value (``hour1``) or the short label (``1h``)."""
        if isinstance(value, TimeFrame):
            return value
        text = str(value).strip()
        if text in _LABEL_TO_TIMEFRAME:
            return _LABEL_TO_TIMEFRAME[text]
        try:
            return cls(text.lower())
        except ValueError:
            raise ValueError(f"Unknown timeframe '{value}'") from None


TIMEFRAME_MS: dict[TimeFrame, int] = {
    TimeFrame.MIN1: ONE_MINUTE_MS,
    TimeFrame.MIN3: 3 * ONE_MINUTE_MS,
    TimeFrame.MIN5: 5 * ONE_MINUTE_MS,
    TimeFrame.MIN15: 15 * ONE_MINUTE_MS,
    TimeFrame.MIN30: 30 * ONE_MINUTE_MS,
    TimeFrame.HOUR1: 60 * ONE_MINUTE_MS,
    TimeFrame.HOUR2: 2 * 60 * ONE_MINUTE_MS,
    TimeFrame.HOUR4: 4 * 60 * ONE_MINUTE_MS,
    TimeFrame.HOUR12: 12 * 60 * ONE_MINUTE_MS,
    TimeFrame.DAY1: ONE_DAY_MS,
    TimeFrame.DAY3: 3 * ONE_DAY_MS,
    TimeFrame.WEEK: 7 * ONE_DAY_MS,
    # Nominal month, used for bucketing only.
    TimeFrame.MONTH: 30 * ONE_DAY_MS,
}

TIMEFRAME_LABELS: dict[TimeFrame, str] = {
    TimeFrame.MIN1: "1m",
    TimeFrame.MIN3: "3m",
    TimeFrame.MIN5: "5m",
    TimeFrame.MIN15: "15m",
    TimeFrame.MIN30: "30m",
    TimeFrame.HOUR1: "1h",
    TimeFrame.HOUR2: "2h",
    TimeFrame.HOUR4: "4h",
    TimeFrame.HOUR12: "12h",
    TimeFrame.DAY1: "1d",
    TimeFrame.DAY3: "3d",
    TimeFrame.WEEK: "1w",
    TimeFrame.MONTH: "1M",
}

_LABEL_TO_TIMEFRAME = {label: tf for tf, label in TIMEFRAME_LABELS.items()}


@dataclass(frozen=True)
class DataSource:
    """Exchange + market pair identifying one price-data provider."""

    exchange: ExchangeId = ExchangeId.BINANCE
    market: MarketType = MarketType.FUTURES

    @classmethod
    def of(cls, exchange: str | ExchangeId, market: str | MarketType) -> "DataSource":
        return cls(
            exchange=ExchangeId(str(getattr(exchange, "value", exchange)).lower()),
            market=MarketType(str(getattr(market, "value", market)).lower()),
        )

    def __str__(self) -> str:
        return f"{self.exchange.value}/{self.market.value}"


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar. ``start`` is inclusive, ``end`` exclusive, both epoch ms."""

    start: int
    end: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    trades: int
    asset: str
    interval: str

    def relabel(self, interval: str) -> "Candle":
        return replace(self, interval=interval)


@dataclass(frozen=True)
class IntervalPlan:
    """Provider interval to request, plus how many base candles form one output candle."""

    interval: str
    base_timeframe: TimeFrame
    group_size: int

    @property
    def is_direct(self) -> bool:
        return self.group_size == 1


@dataclass(frozen=True)
class Gap:
    """Half-open ``[start, end)`` range of buckets missing from the cache."""

    start: int
    end: int
