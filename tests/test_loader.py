import logging
import random

import pytest

from kwant_chart.data import intervals
from kwant_chart.data.cache import CandleCache
from kwant_chart.data.cancel import CancelToken
from kwant_chart.data.errors import FetchCancelledError, ProviderError, UnsupportedTimeframeError
from kwant_chart.data.loader import CandleLoader, collect_cached, normalize_range
from kwant_chart.data.pipeline import fetch_candles
from kwant_chart.data.types import DataSource, ExchangeId, MarketType, TimeFrame
from kwant_chart.data.validation import DataValidationError
from kwant_chart.utils.config import LoaderSettings

HOUR = 3_600_000
MINUTE = 60_000
NOW = 472_224 * HOUR  # 2023-11-15 00:00 UTC, aligned to the hour grid
BINANCE_FUTURES = DataSource(ExchangeId.BINANCE, MarketType.FUTURES)
BYBIT_FUTURES = DataSource(ExchangeId.BYBIT, MarketType.FUTURES)
DAY = 24 * HOUR
WEEK = 7 * DAY
# 1970-01-01 was a Thursday; exchange weeks open on Monday.
MONDAY_OFFSET = 4 * DAY


def binance_handler(interval_ms, row=None, offset_ms=0):
    """Serve Binance-shaped klines for whatever window is asked for."""

    def handler(url, params):
        start = int(params["startTime"])
        end = int(params["endTime"])
        limit = int(params["limit"])
        t = -(-(start - offset_ms) // interval_ms) * interval_ms + offset_ms
        rows = []
        while t < end and len(rows) < limit:
            rows.append(row(t) if row else [t, "1", "2", "0.5", "1.5", "10", t + interval_ms - 1, "0", 3, "0", "0"])
            t += interval_ms
        return rows

    return handler


def make_loader(http, **settings):
    return CandleLoader(cache=CandleCache(), http=http, settings=LoaderSettings(**settings), clock=lambda: NOW)


def test_normalize_range_snaps_outward():
    assert normalize_range(HOUR + 1, 3 * HOUR - 1, HOUR) == (HOUR, 3 * HOUR)
    assert normalize_range(-5, 0, HOUR) == (0, HOUR)
    assert normalize_range(2 * HOUR, 2 * HOUR, HOUR) == (2 * HOUR, 3 * HOUR)


def test_gap_scan_partitions_range(candle_factory):
    rng = random.Random(3)
    start, end = 100 * MINUTE, 400 * MINUTE
    for _ in range(20):
        tf_cache = {}
        for ts in range(start, end, MINUTE):
            if rng.random() < 0.5:
                tf_cache[ts] = candle_factory(ts)
        cached, gaps = collect_cached(tf_cache, "BTC", start, end, MINUTE)

        gap_buckets = [ts for gap in gaps for ts in range(gap.start, gap.end, MINUTE)]
        cached_buckets = [c.start for c in cached]
        assert sorted(gap_buckets + cached_buckets) == list(range(start, end, MINUTE))
        assert not set(gap_buckets) & set(cached_buckets)
        # Runs are maximal: consecutive gaps never touch.
        for left, right in zip(gaps, gaps[1:]):
            assert left.end < right.start


def test_gap_scan_treats_other_asset_as_missing(candle_factory):
    tf_cache = {0: candle_factory(0, asset="ETH"), MINUTE: candle_factory(MINUTE, asset="BTC")}
    cached, gaps = collect_cached(tf_cache, "BTC", 0, 2 * MINUTE, MINUTE)
    assert [c.start for c in cached] == [MINUTE]
    assert [(g.start, g.end) for g in gaps] == [(0, MINUTE)]


@pytest.mark.asyncio
async def test_second_identical_load_is_a_cache_hit(fake_http):
    http = fake_http(handler=binance_handler(HOUR))
    loader = make_loader(http)

    first = await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 10 * HOUR, NOW - 5 * HOUR, "btc")
    calls_after_first = len(http.calls)
    second = await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 10 * HOUR, NOW - 5 * HOUR, "btc")

    assert calls_after_first == 1
    assert len(http.calls) == calls_after_first
    assert second == first
    # 200 prefetch buckets before the range, clamped to now after it.
    assert first[0].start == NOW - 210 * HOUR
    assert first[-1].end == NOW
    assert all(c.asset == "BTC" and c.interval == "1h" for c in first)
    assert http.calls[0][1]["symbol"] == "BTCUSDT"


@pytest.mark.asyncio
async def test_switching_asset_evicts_previous_owner(fake_http):
    http = fake_http(handler=binance_handler(HOUR))
    loader = make_loader(http)

    await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 10 * HOUR, NOW - 5 * HOUR, "BTC")
    eth = await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 10 * HOUR, NOW - 5 * HOUR, "ETH")

    assert eth and all(c.asset == "ETH" for c in eth)
    assert loader.cache.owner(TimeFrame.HOUR1) == "ETH"
    assert loader.cache.snapshot(TimeFrame.HOUR1, "BTC") == []
    assert len(loader.cache) == len(eth)


@pytest.mark.asyncio
async def test_only_missing_gaps_are_fetched(fake_http, candle_factory):
    http = fake_http(handler=binance_handler(HOUR))
    loader = make_loader(http, prefetch_buckets=0)
    tf_cache = loader.cache.get_timeframe_cache(TimeFrame.HOUR1, "BTC")
    tf_cache[NOW - 8 * HOUR] = candle_factory(NOW - 8 * HOUR, interval_ms=HOUR, label="1h", c=99.0)

    snapshots = []
    out = await loader.load_candles(
        BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 10 * HOUR, NOW - 5 * HOUR, "BTC", on_cache_snapshot=snapshots.append
    )

    windows = [(p["startTime"], p["endTime"]) for _, p in http.calls]
    assert windows == [(NOW - 10 * HOUR, NOW - 8 * HOUR), (NOW - 7 * HOUR, NOW - 5 * HOUR)]
    assert [c.start for c in out] == [NOW - h * HOUR for h in (10, 9, 8, 7, 6)]
    assert out[2].close == 99.0
    assert len(snapshots) == 1 and [c.start for c in snapshots[0]] == [NOW - 8 * HOUR]


@pytest.mark.asyncio
async def test_blank_asset_has_no_side_effects(fake_http):
    http = fake_http()
    loader = make_loader(http)
    assert await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, 0, NOW, "   ") == []
    assert http.calls == []
    assert loader.cache.owner(TimeFrame.HOUR1) is None


@pytest.mark.asyncio
async def test_degenerate_range_falls_back_to_trailing_window(fake_http):
    http = fake_http(handler=binance_handler(HOUR))
    loader = make_loader(http)
    out = await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, 0, 0, "BTC")
    assert http.calls[0][1]["startTime"] == NOW - 30 * 24 * HOUR
    assert len(out) == 30 * 24


@pytest.mark.asyncio
async def test_cancel_mid_pagination_keeps_earlier_cache(fake_http):
    http = fake_http(handler=binance_handler(MINUTE))
    loader = make_loader(http)

    first = await loader.load_candles(BINANCE_FUTURES, TimeFrame.MIN1, NOW - 10_000 * MINUTE, NOW - 9_000 * MINUTE, "BTC")
    first_calls = len(http.calls)
    assert len(first) == 1_400

    token = CancelToken()
    http.on_call = lambda n: token.cancel() if n == first_calls + 2 else None
    with pytest.raises(FetchCancelledError):
        await loader.load_candles(
            BINANCE_FUTURES, TimeFrame.MIN1, NOW - 4_000 * MINUTE, NOW, "BTC", cancel=token
        )

    # 4,200 missing minutes need three 1,500-row pages; the third is never issued.
    assert len(http.calls) == first_calls + 2
    assert loader.cache.snapshot(TimeFrame.MIN1, "BTC") == first


@pytest.mark.asyncio
async def test_already_cancelled_token_issues_no_requests(fake_http):
    http = fake_http(handler=binance_handler(HOUR))
    loader = make_loader(http)
    token = CancelToken()
    token.cancel()
    with pytest.raises(FetchCancelledError):
        await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 10 * HOUR, NOW, "BTC", cancel=token)
    assert http.calls == []


@pytest.mark.asyncio
async def test_provider_error_propagates(fake_http):
    http = fake_http(responses=[ProviderError("Binance futures", 400, "Invalid symbol.")])
    loader = make_loader(http)
    with pytest.raises(ProviderError) as excinfo:
        await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 10 * HOUR, NOW, "NOPE")
    assert excinfo.value.status == 400
    assert loader.cache.snapshot(TimeFrame.HOUR1, "NOPE") == []


@pytest.mark.asyncio
async def test_unsupported_timeframe_aborts_load(fake_http):
    http = fake_http()
    loader = make_loader(http)
    with pytest.raises(UnsupportedTimeframeError):
        await loader.load_candles(DataSource(ExchangeId.COINBASE, MarketType.FUTURES), TimeFrame.HOUR1, NOW - HOUR, NOW, "BTC")
    assert http.calls == []


def _bad_row(t):
    # high below open: malformed provider data
    return [t, "5", "1", "0.5", "2", "10", t + HOUR - 1, "0", 1]


@pytest.mark.asyncio
async def test_malformed_candles_warn_by_default(fake_http, caplog):
    loader = make_loader(fake_http(handler=binance_handler(HOUR, _bad_row)), prefetch_buckets=0)
    with caplog.at_level(logging.WARNING, logger="kwant_chart.data.loader"):
        out = await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 3 * HOUR, NOW, "BTC")
    assert len(out) == 3
    assert "high price below" in caplog.text


@pytest.mark.asyncio
async def test_malformed_candles_raise_in_strict_mode(fake_http):
    loader = make_loader(fake_http(handler=binance_handler(HOUR, _bad_row)), prefetch_buckets=0, strict_validation=True)
    with pytest.raises(DataValidationError):
        await loader.load_candles(BINANCE_FUTURES, TimeFrame.HOUR1, NOW - 3 * HOUR, NOW, "BTC")
    assert loader.cache.snapshot(TimeFrame.HOUR1, "BTC") == []


@pytest.mark.asyncio
async def test_hour1_synthesized_from_min15_matches_native(fake_http, monkeypatch):
    quarter = 15 * MINUTE
    monkeypatch.setitem(
        intervals.EXCHANGE_INTERVALS[ExchangeId.BINANCE],
        MarketType.FUTURES,
        {TimeFrame.MIN1: "1m", TimeFrame.MIN15: "15m", TimeFrame.DAY1: "1d"},
    )
    bars = {
        NOW - HOUR: ("100", "104", "99", "103", "2.5", 4),
        NOW - HOUR + quarter: ("103", "108", "101", "107", "1.0", 2),
        NOW - HOUR + 2 * quarter: ("107", "107.5", "95", "96", "3.0", 7),
        NOW - HOUR + 3 * quarter: ("96", "101", "96", "100.5", "0.5", 1),
    }
    rows = [[t, o, h, l, c, v, t + quarter - 1, "0", n] for t, (o, h, l, c, v, n) in bars.items()]
    http = fake_http(responses=[rows])

    out = await fetch_candles(BINANCE_FUTURES, "btc", "usdt", NOW - HOUR, NOW, TimeFrame.HOUR1, http)

    assert http.calls[0][1]["interval"] == "15m"
    assert len(out) == 1
    native = out[0]
    assert (native.start, native.end) == (NOW - HOUR, NOW)
    assert (native.open, native.high, native.low, native.close) == (100.0, 108.0, 95.0, 100.5)
    assert native.volume == 7.0
    assert native.trades == 14
    assert native.interval == "1h"


@pytest.mark.asyncio
async def test_long_bybit_gap_is_fetched_completely(fake_http, bybit_handler):
    http = fake_http(handler=bybit_handler(MINUTE))
    loader = make_loader(http, prefetch_buckets=0)

    first = await loader.load_candles(BYBIT_FUTURES, TimeFrame.MIN1, NOW - 2_500 * MINUTE, NOW, "BTC")
    first_calls = len(http.calls)
    second = await loader.load_candles(BYBIT_FUTURES, TimeFrame.MIN1, NOW - 2_500 * MINUTE, NOW, "BTC")

    assert [c.start for c in first] == list(range(NOW - 2_500 * MINUTE, NOW, MINUTE))
    assert first_calls == 3
    assert len(http.calls) == first_calls
    assert second == first


@pytest.mark.asyncio
async def test_native_weekly_candles_are_cache_hits(fake_http):
    http = fake_http(handler=binance_handler(WEEK, offset_ms=MONDAY_OFFSET))
    loader = make_loader(http, prefetch_buckets=0)

    first = await loader.load_candles(BINANCE_FUTURES, TimeFrame.WEEK, NOW - 10 * WEEK, NOW, "BTC")
    second = await loader.load_candles(BINANCE_FUTURES, TimeFrame.WEEK, NOW - 10 * WEEK, NOW, "BTC")

    assert len(http.calls) == 1
    assert second == first
    assert first and all((c.start - MONDAY_OFFSET) % WEEK == 0 for c in first)
    assert all(c.interval == "1w" for c in first)
    # The week already open at the start of the range is included.
    assert first[0].start <= NOW - 10 * WEEK


def test_calendar_months_cover_the_bucket_grid(candle_factory):
    month = TimeFrame.MONTH.ms
    # Jan (31d), Feb (29d), Mar (31d) 2024 as native monthly candles.
    jan = 1_704_067_200_000
    lengths = [31 * DAY, 29 * DAY, 31 * DAY]
    tf_cache = {}
    start = jan
    for length in lengths:
        tf_cache[start] = candle_factory(start, interval_ms=length, label="1M")
        start += length

    grid_start, grid_end = normalize_range(jan, start, month)
    exact_cached, exact_gaps = collect_cached(tf_cache, "BTC", grid_start, grid_end, month)
    cached, gaps = collect_cached(tf_cache, "BTC", grid_start + month, grid_end - month, month, exact=False)

    assert exact_cached == [] and exact_gaps
    assert gaps == []
    assert cached and all(c.interval == "1M" for c in cached)
