from .cache import CandleCache
from .cancel import CancelToken
from .errors import (
    CandleDataError,
    FetchCancelledError,
    ProviderError,
    UnsupportedSourceError,
    UnsupportedTimeframeError,
)
from .intervals import is_timeframe_supported, resolve_interval, resolve_interval_or_raise
from .types import Candle, DataSource, ExchangeId, IntervalPlan, MarketType, TimeFrame

__all__ = [
    "Candle",
    "CandleCache",
    "CandleDataError",
    "CancelToken",
    "DataSource",
    "ExchangeId",
    "FetchCancelledError",
    "IntervalPlan",
    "MarketType",
    "ProviderError",
    "TimeFrame",
    "UnsupportedSourceError",
    "UnsupportedTimeframeError",
    "is_timeframe_supported",
    "resolve_interval",
    "resolve_interval_or_raise",
]
