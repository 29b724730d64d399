import math

import pytest

from kwant_chart.data.sources.base import resolve_symbol, to_count, to_float, to_ms, to_volume
from kwant_chart.data.sources.kraken import normalize_kraken_asset


def test_compound_symbol_is_not_suffixed_twice():
    assert resolve_symbol("BTC-USDT", "USDT", "-") == resolve_symbol("BTC", "USDT", "-") == "BTC-USDT"


@pytest.mark.parametrize(
    "asset, quote, separator, suffix, lowercase, expected",
    [
        (" btc ", "usdt", "", "", False, "BTCUSDT"),
        ("BTCUSDT", "USDT", "", "", False, "BTCUSDT"),
        ("eth", "USDT", "_", "", False, "ETH_USDT"),
        ("ETH_USDT", "USDT", "-", "", False, "ETH_USDT"),
        ("XBT", "USDT", "", "M", False, "XBTUSDTM"),
        ("btc", "usdt", "", "", True, "btcusdt"),
    ],
)
def test_resolve_symbol_variants(asset, quote, separator, suffix, lowercase, expected):
    assert resolve_symbol(asset, quote, separator, suffix, lowercase) == expected


def test_kraken_maps_btc_to_xbt():
    assert normalize_kraken_asset("btc") == "XBT"
    assert normalize_kraken_asset("eth") == "ETH"


def test_lenient_numeric_coercion():
    assert to_float("1.5") == 1.5
    assert math.isnan(to_float("n/a"))
    assert math.isnan(to_float(None))
    assert to_volume("oops") == 0.0
    assert to_count("12") == 12
    assert to_count(None) == 0
    assert to_ms("1700000000", scale=1000) == 1_700_000_000_000
    assert to_ms("bad") is None
