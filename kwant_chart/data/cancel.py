"""Cooperative cancellation for candle fetches."""

from __future__ import annotations

import asyncio

from kwant_chart.data.errors import FetchCancelledError


class CancelToken:
    """Set once by the caller when a request has been superseded."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelledError()

    async def wait(self) -> None:
        await self._event.wait()


def raise_if_cancelled(cancel: CancelToken | None) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()
