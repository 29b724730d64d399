"""Exception types raised by the candle data layer."""

from __future__ import annotations

from typing import Optional


class CandleDataError(Exception):
    """Base class for candle acquisition failures."""


class UnsupportedSourceError(CandleDataError):
    """Raised when an exchange/market pair has no registered provider."""

    def __init__(self, exchange: str, market: Optional[str] = None) -> None:
        self.exchange = exchange
        self.market = market
        target = exchange if market is None else f"{exchange} {market}"
        super().__init__(f"Source not supported: {target}")


class UnsupportedTimeframeError(CandleDataError):
    """Raised when no direct or evenly-dividing base interval exists."""

    def __init__(self, exchange: str, market: str, timeframe: str) -> None:
        self.exchange = exchange
        self.market = market
        self.timeframe = timeframe
        super().__init__(f"Timeframe {timeframe} not supported for {exchange} {market}")


class ProviderError(CandleDataError):
    """Non-success HTTP status, transport failure or provider-coded error envelope."""

    def __init__(
        self,
        provider: str,
        status: int | str | None = None,
        message: Optional[str] = None,
    ) -> None:
        self.provider = provider
        self.status = status
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        detail = f"{self.provider} error"
        if self.status is not None:
            detail += f" {self.status}"
        if self.message:
            detail += f": {self.message}"
        return detail


class FetchCancelledError(CandleDataError):
    """Raised when a superseded request is cancelled; not a real failure."""

    def __init__(self, message: str = "Aborted") -> None:
        super().__init__(message)
