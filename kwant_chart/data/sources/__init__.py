from .base import (
    FETCHERS,
    CandleFetcher,
    FetchRequest,
    get_fetcher,
    register_fetcher,
    resolve_symbol,
)
from .binance import BinanceFetcher
from .bitget import BitgetFetcher
from .bybit import BybitFetcher
from .coinbase import CoinbaseFetcher
from .gateio import GateioFetcher
from .htx import HtxFetcher
from .kraken import KrakenFetcher
from .kucoin import KucoinFetcher
from .mexc import MexcFetcher
from .okx import OkxFetcher

__all__ = [
    "FETCHERS",
    "CandleFetcher",
    "FetchRequest",
    "get_fetcher",
    "register_fetcher",
    "resolve_symbol",
    "BinanceFetcher",
    "BitgetFetcher",
    "BybitFetcher",
    "CoinbaseFetcher",
    "GateioFetcher",
    "HtxFetcher",
    "KrakenFetcher",
    "KucoinFetcher",
    "MexcFetcher",
    "OkxFetcher",
]
