"""Configuration system backed by Pydantic + YAML."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from kwant_chart.data.types import (
    DEFAULT_QUOTE_ASSET,
    DataSource,
    ExchangeId,
    MarketType,
    TimeFrame,
)

T = TypeVar("T", bound=BaseModel)

_TRUTHY = {"true", "1", "yes"}
_FALSY = {"false", "0", "no"}


class LoaderSettings(BaseModel):
    """Knobs for the gap-filling candle loader."""

    prefetch_buckets: int = Field(default=200, description="Buckets fetched beyond each side of the visible range")
    default_window_days: int = Field(default=30, description="Trailing window used when the requested range is degenerate")
    default_quote_asset: str = DEFAULT_QUOTE_ASSET
    request_timeout: float = Field(default=15.0, description="Total seconds allowed per HTTP request")
    strict_validation: bool = Field(
        default=False,
        description="Raise on malformed candles instead of logging a warning and caching them",
    )

    @field_validator("prefetch_buckets")
    @classmethod
    def validate_prefetch(cls, value: int) -> int:
        if value < 0:
            raise ValueError("prefetch_buckets must be >= 0")
        return value

    @field_validator("default_window_days")
    @classmethod
    def validate_window(cls, value: int) -> int:
        if value < 1:
            raise ValueError("default_window_days must be >= 1")
        return value

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout must be > 0")
        return value

    @field_validator("default_quote_asset")
    @classmethod
    def normalize_quote(cls, value: str) -> str:
        return value.strip().upper() or DEFAULT_QUOTE_ASSET

    def with_env_overrides(self) -> "LoaderSettings":
        """Apply ``KWANT_REQUEST_TIMEOUT`` / ``KWANT_STRICT_VALIDATION`` when set."""
        updates: dict[str, Any] = {}
        timeout_env = os.getenv("KWANT_REQUEST_TIMEOUT")
        if timeout_env:
            updates["request_timeout"] = float(timeout_env)
        strict_env = os.getenv("KWANT_STRICT_VALIDATION", "").lower()
        if strict_env in _TRUTHY:
            updates["strict_validation"] = True
        elif strict_env in _FALSY:
            updates["strict_validation"] = False
        if not updates:
            return self
        return LoaderSettings.model_validate({**self.model_dump(), **updates})

    @classmethod
    def from_env(cls) -> "LoaderSettings":
        return cls().with_env_overrides()


class ChartDataConfig(BaseModel):
    """One chart's data request: which provider, asset, timeframe and range."""

    exchange: ExchangeId = ExchangeId.BINANCE
    market: MarketType = MarketType.FUTURES
    asset: str
    quote_asset: str = DEFAULT_QUOTE_ASSET
    timeframe: TimeFrame = TimeFrame.HOUR1
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    loader: LoaderSettings = Field(default_factory=LoaderSettings)

    @field_validator("exchange", "market", mode="before")
    @classmethod
    def lowercase_ids(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("timeframe", mode="before")
    @classmethod
    def parse_timeframe(cls, value: Any) -> TimeFrame:
        return TimeFrame.parse(value)

    @field_validator("asset", "quote_asset")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("start", "end", mode="before")
    @classmethod
    def ensure_datetime(cls, value: Any) -> Optional[datetime]:
        if value is None:
            return None
        if isinstance(value, datetime):
            dt_value = value
        else:
            dt_value = datetime.fromisoformat(str(value))
        if dt_value.tzinfo is None:
            return dt_value.replace(tzinfo=timezone.utc)
        return dt_value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def validate_range(self) -> "ChartDataConfig":
        if not self.asset:
            raise ValueError("asset cannot be empty")
        if self.start and self.end and self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    @property
    def source(self) -> DataSource:
        return DataSource(exchange=self.exchange, market=self.market)


def load_yaml_config(path: Any, model: Type[T]) -> T:
    """Load YAML file and parse it into the provided Pydantic model."""

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file {file_path} does not exist.")
    with file_path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    return model.model_validate(payload)
