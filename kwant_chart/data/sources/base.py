"""Provider fetcher interface, registry and shared parsing helpers."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Protocol, Type

from kwant_chart.data.cancel import CancelToken
from kwant_chart.data.errors import UnsupportedSourceError
from kwant_chart.data.types import Candle, DataSource, ExchangeId, MarketType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchRequest:
    """Everything a fetcher needs to pull one range of provider-native candles."""

    source: DataSource
    asset: str
    quote_asset: str
    start_ms: int
    end_ms: int
    interval: str
    interval_label: str
    base_interval_ms: int

    @property
    def is_spot(self) -> bool:
        return self.source.market is MarketType.SPOT

    @property
    def start_sec(self) -> int:
        return self.start_ms // 1000

    @property
    def end_sec(self) -> int:
        return self.end_ms // 1000


class JsonClient(Protocol):
    """What fetchers need from the HTTP layer."""

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        provider: str,
        cancel: Optional[CancelToken] = None,
    ) -> Any:  # pragma: no cover - interface only
        ...


class CandleFetcher(ABC):
    """Turns a ``FetchRequest`` into raw candles for one exchange.

    Output is flat, unclipped and may be unsorted or overlapping; clipping and
    deduplication happen downstream.
    """

    exchange: ClassVar[ExchangeId]
    name: ClassVar[str]

    @abstractmethod
    async def fetch(
        self,
        request: FetchRequest,
        http: JsonClient,
        cancel: Optional[CancelToken] = None,
    ) -> List[Candle]:
        """Return provider candles covering ``request``."""

    @staticmethod
    def make_candle(
        request: FetchRequest,
        start: int,
        open_: Any,
        high: Any,
        low: Any,
        close: Any,
        volume: Any,
        trades: Any = 0,
        end: Any = None,
    ) -> Candle:
        end_ms = to_ms(end) if end is not None else None
        return Candle(
            start=start,
            end=end_ms or start + request.base_interval_ms,
            open=to_float(open_),
            high=to_float(high),
            low=to_float(low),
            close=to_float(close),
            volume=to_volume(volume),
            trades=to_count(trades),
            asset=request.asset,
            interval=request.interval_label,
        )


FETCHERS: Dict[ExchangeId, CandleFetcher] = {}


def register_fetcher(cls: Type[CandleFetcher]) -> Type[CandleFetcher]:
    """Class decorator adding an adapter to the exchange registry."""
    FETCHERS[cls.exchange] = cls()
    return cls


def get_fetcher(exchange: ExchangeId) -> CandleFetcher:
    try:
        return FETCHERS[exchange]
    except KeyError:
        raise UnsupportedSourceError(getattr(exchange, "value", str(exchange))) from None


def normalize_symbol_part(value: str) -> str:
    return value.strip().upper()


def resolve_symbol(
    asset: str,
    quote_asset: str,
    separator: str,
    suffix: str = "",
    lowercase: bool = False,
) -> str:
    """Build ``BASE{separator}QUOTE{suffix}`` unless ``asset`` is already compound.

    An asset containing ``-``/``_`` or the quote leg is passed through, which
    keeps fully qualified symbols from being suffixed twice.
    """
    base = normalize_symbol_part(asset)
    quote = normalize_symbol_part(quote_asset)
    compound = "-" in base or "_" in base or (quote and quote in base)
    symbol = base if compound else f"{base}{separator}{quote}{suffix}"
    return symbol.lower() if lowercase else symbol


def to_float(value: Any) -> float:
    """Lenient numeric parse; unparseable fields become NaN."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def to_volume(value: Any) -> float:
    number = to_float(value)
    return number if math.isfinite(number) else 0.0


def to_count(value: Any) -> int:
    number = to_float(value)
    return int(number) if math.isfinite(number) else 0


def to_ms(value: Any, scale: int = 1) -> Optional[int]:
    """Parse a provider timestamp and scale it to milliseconds, ``None`` if unusable."""
    number = to_float(value)
    if not math.isfinite(number):
        return None
    return int(number * scale)


def cell(row: Any, index: int) -> Any:
    """``row[index]`` for list rows, ``None`` when the row is short or not a list."""
    if isinstance(row, (list, tuple)) and len(row) > index:
        return row[index]
    return None
