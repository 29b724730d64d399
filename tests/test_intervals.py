import pytest

from kwant_chart.data.errors import UnsupportedTimeframeError
from kwant_chart.data.intervals import (
    is_timeframe_supported,
    native_timeframes,
    resolve_interval,
    resolve_interval_or_raise,
    supported_markets,
    supported_timeframes,
)
from kwant_chart.data.types import DataSource, ExchangeId, IntervalPlan, MarketType, TimeFrame


def _source(exchange, market="spot"):
    return DataSource.of(exchange, market)


def test_direct_interval_has_group_size_one():
    plan = resolve_interval(_source("binance", "futures"), TimeFrame.HOUR1)
    assert plan == IntervalPlan(interval="1h", base_timeframe=TimeFrame.HOUR1, group_size=1)
    assert plan.is_direct


def test_bybit_day3_synthesized_from_daily():
    plan = resolve_interval(_source("bybit"), TimeFrame.DAY3)
    assert plan == IntervalPlan(interval="D", base_timeframe=TimeFrame.DAY1, group_size=3)


def test_coinbase_hour4_uses_largest_divisor():
    # Coinbase has 1m/5m/15m/1h/1d; 1h is the largest that divides 4h.
    plan = resolve_interval(_source("coinbase"), TimeFrame.HOUR4)
    assert plan.interval == "3600"
    assert plan.base_timeframe is TimeFrame.HOUR1
    assert plan.group_size == 4


def test_hour1_from_min15_when_hour1_missing(monkeypatch):
    from kwant_chart.data import intervals

    trimmed = {TimeFrame.MIN1: "1min", TimeFrame.MIN15: "15min", TimeFrame.DAY1: "1day"}
    monkeypatch.setitem(intervals.EXCHANGE_INTERVALS[ExchangeId.HTX], MarketType.SPOT, trimmed)
    plan = resolve_interval(_source("htx"), TimeFrame.HOUR1)
    assert plan == IntervalPlan(interval="15min", base_timeframe=TimeFrame.MIN15, group_size=4)


def test_kraken_min3_from_min1_and_month_from_day():
    source = _source("kraken", "futures")
    assert resolve_interval(source, TimeFrame.MIN3) == IntervalPlan("1", TimeFrame.MIN1, 3)
    month = resolve_interval(source, TimeFrame.MONTH)
    assert month.base_timeframe is TimeFrame.DAY1
    assert month.group_size == 30


def test_coinbase_futures_unsupported():
    source = _source("coinbase", "futures")
    assert resolve_interval(source, TimeFrame.HOUR1) is None
    assert not is_timeframe_supported(source, TimeFrame.HOUR1)
    with pytest.raises(UnsupportedTimeframeError) as excinfo:
        resolve_interval_or_raise(source, TimeFrame.HOUR1)
    assert excinfo.value.exchange == "coinbase"
    assert excinfo.value.timeframe == "hour1"


def test_no_evenly_dividing_base_returns_none(monkeypatch):
    from kwant_chart.data import intervals

    monkeypatch.setitem(
        intervals.EXCHANGE_INTERVALS[ExchangeId.MEXC], MarketType.SPOT, {TimeFrame.WEEK: "1w"}
    )
    assert resolve_interval(_source("mexc"), TimeFrame.DAY1) is None
    with pytest.raises(UnsupportedTimeframeError):
        resolve_interval_or_raise(_source("mexc"), TimeFrame.DAY1)


def test_every_supported_pair_resolves_every_timeframe():
    # Each provider has 1m, which divides every logical timeframe.
    for exchange in ExchangeId:
        for market in supported_markets(exchange):
            source = DataSource(exchange=exchange, market=market)
            assert supported_timeframes(source) == list(TimeFrame)


def test_supported_markets_and_native_timeframes():
    assert supported_markets(ExchangeId.COINBASE) == [MarketType.SPOT]
    assert supported_markets(ExchangeId.OKX) == [MarketType.SPOT, MarketType.FUTURES]
    assert TimeFrame.DAY3 not in native_timeframes(_source("kucoin", "spot"))
    assert TimeFrame.DAY3 in native_timeframes(_source("kucoin", "futures"))


def test_timeframe_parse_accepts_labels_and_values():
    assert TimeFrame.parse("1h") is TimeFrame.HOUR1
    assert TimeFrame.parse("1M") is TimeFrame.MONTH
    assert TimeFrame.parse("1m") is TimeFrame.MIN1
    assert TimeFrame.parse("day3") is TimeFrame.DAY3
    assert TimeFrame.HOUR4.ms == 4 * 3_600_000
    with pytest.raises(ValueError):
        TimeFrame.parse("7m")
