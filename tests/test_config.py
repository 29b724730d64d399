import os
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from kwant_chart.data.types import DataSource, ExchangeId, MarketType, TimeFrame
from kwant_chart.utils.config import ChartDataConfig, LoaderSettings, load_yaml_config
from kwant_chart.utils.env import load_project_env


def test_loader_settings_defaults():
    settings = LoaderSettings()
    assert settings.prefetch_buckets == 200
    assert settings.default_window_days == 30
    assert settings.default_quote_asset == "USDT"
    assert settings.request_timeout == 15.0
    assert settings.strict_validation is False


@pytest.mark.parametrize(
    "field, value",
    [("prefetch_buckets", -1), ("default_window_days", 0), ("request_timeout", 0)],
)
def test_loader_settings_rejects_out_of_range(field, value):
    with pytest.raises(ValidationError):
        LoaderSettings(**{field: value})


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("KWANT_REQUEST_TIMEOUT", "4.5")
    monkeypatch.setenv("KWANT_STRICT_VALIDATION", "yes")
    settings = LoaderSettings(prefetch_buckets=10).with_env_overrides()
    assert settings.request_timeout == 4.5
    assert settings.strict_validation is True
    assert settings.prefetch_buckets == 10


def test_from_env_without_overrides(monkeypatch):
    monkeypatch.delenv("KWANT_REQUEST_TIMEOUT", raising=False)
    monkeypatch.delenv("KWANT_STRICT_VALIDATION", raising=False)
    assert LoaderSettings.from_env() == LoaderSettings()


def test_chart_config_normalizes_fields():
    config = ChartDataConfig(
        exchange="OKX",
        market="Spot",
        asset=" eth ",
        quote_asset="usdc",
        timeframe="4h",
        start="2024-01-01",
        end="2024-01-02T00:00:00+02:00",
    )
    assert config.source == DataSource(ExchangeId.OKX, MarketType.SPOT)
    assert config.asset == "ETH"
    assert config.quote_asset == "USDC"
    assert config.timeframe is TimeFrame.HOUR4
    assert config.start == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert config.end == datetime(2024, 1, 1, 22, tzinfo=timezone.utc)


def test_chart_config_rejects_inverted_range():
    with pytest.raises(ValidationError, match="end must be after start"):
        ChartDataConfig(asset="BTC", start="2024-01-02", end="2024-01-01")


def test_chart_config_rejects_blank_asset_and_bad_timeframe():
    with pytest.raises(ValidationError):
        ChartDataConfig(asset="  ")
    with pytest.raises(ValidationError, match="Unknown timeframe"):
        ChartDataConfig(asset="BTC", timeframe="7m")


def test_load_yaml_config(tmp_path):
    path = tmp_path / "chart.yaml"
    path.write_text(
        "exchange: bybit\n"
        "market: futures\n"
        "asset: SOL\n"
        "timeframe: 1d\n"
        "loader:\n"
        "  prefetch_buckets: 50\n"
        "  strict_validation: true\n",
        encoding="utf-8",
    )
    config = load_yaml_config(path, ChartDataConfig)
    assert config.exchange is ExchangeId.BYBIT
    assert config.timeframe is TimeFrame.DAY1
    assert config.loader.prefetch_buckets == 50
    assert config.loader.strict_validation is True


def test_load_yaml_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "missing.yaml", ChartDataConfig)


def test_load_project_env(tmp_path, monkeypatch):
    # Register the variable with monkeypatch so it is removed again afterwards.
    monkeypatch.setenv("KWANT_ENV_MARKER", "unset")
    monkeypatch.delenv("KWANT_ENV_MARKER")
    env_file = tmp_path / ".env"
    env_file.write_text("KWANT_ENV_MARKER=loaded\n", encoding="utf-8")

    assert load_project_env(env_file) is True
    assert os.environ["KWANT_ENV_MARKER"] == "loaded"
    assert load_project_env(tmp_path / "absent.env") is False
