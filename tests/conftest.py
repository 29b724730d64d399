import os
import sys
from typing import Any, Callable, List, Optional

import pytest

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from kwant_chart.data.types import Candle  # noqa: E402


class FakeHttp:
    """Scripted stand-in for ``HttpClient``; never touches the network.

    ``responses`` are returned in order (exceptions are raised); ``handler``
    takes ``(url, params)`` and overrides the script when given.
    """

    def __init__(self, responses: Optional[List[Any]] = None, handler: Optional[Callable] = None) -> None:
        self.responses = list(responses or [])
        self.handler = handler
        self.calls: List[tuple] = []
        self.on_call: Optional[Callable[[int], None]] = None

    async def get_json(self, url, params=None, *, provider, cancel=None):
        if cancel is not None:
            cancel.raise_if_cancelled()
        self.calls.append((url, dict(params or {})))
        if self.on_call is not None:
            self.on_call(len(self.calls))
        if self.handler is not None:
            return self.handler(url, dict(params or {}))
        if not self.responses:
            return []
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_http():
    return FakeHttp


def make_candle(start, interval_ms=60_000, asset="BTC", o=1.0, h=2.0, l=0.5, c=1.5, v=1.0, trades=0, label="1m"):
    return Candle(
        start=start,
        end=start + interval_ms,
        open=o,
        high=h,
        low=l,
        close=c,
        volume=v,
        trades=trades,
        asset=asset,
        interval=label,
    )


@pytest.fixture
def candle_factory():
    return make_candle


def make_bybit_handler(interval_ms, offset_ms=0):
    """Mimic ``/v5/market/kline``: the newest ``limit`` bars in ``[start, end]``, newest first."""

    def handler(url, params):
        start = int(params["start"])
        end = int(params["end"])
        limit = int(params["limit"])
        t = -(-(start - offset_ms) // interval_ms) * interval_ms + offset_ms
        bars = []
        while t <= end:
            bars.append([str(t), "1", "2", "0.5", "1.5", "9", "0"])
            t += interval_ms
        return {"retCode": 0, "retMsg": "OK", "result": {"list": list(reversed(bars[-limit:]))}}

    return handler


@pytest.fixture
def bybit_handler():
    return make_bybit_handler
