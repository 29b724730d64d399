"""CLI for fetching and inspecting historical chart candles."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import typer

from kwant_chart.data.aggregate import normalize_candles
from kwant_chart.data.errors import CandleDataError
from kwant_chart.data.intervals import EXCHANGE_LABELS, resolve_interval, supported_markets
from kwant_chart.data.loader import CandleLoader
from kwant_chart.data.types import Candle, DataSource, ExchangeId, MarketType, TimeFrame
from kwant_chart.data.validation import candles_to_frame
from kwant_chart.utils.config import ChartDataConfig, LoaderSettings, load_yaml_config
from kwant_chart.utils.env import load_project_env

app = typer.Typer(help="kwant chart candle data CLI")
load_project_env()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)

logger = logging.getLogger(__name__)


def _to_ms(value: Optional[datetime]) -> int:
    if value is None:
        return 0
    return int(value.timestamp() * 1000)


def _format_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


async def _load(config: ChartDataConfig) -> List[Candle]:
    loader = CandleLoader(settings=config.loader.with_env_overrides())
    try:
        return await loader.load_candles(
            config.source,
            config.timeframe,
            _to_ms(config.start),
            _to_ms(config.end),
            config.asset,
            config.quote_asset,
        )
    finally:
        await loader.close()


def _write_output(candles: List[Candle], output: Path) -> None:
    frame = candles_to_frame(candles)
    output.parent.mkdir(parents=True, exist_ok=True)
    if output.suffix.lower() == ".parquet":
        frame.to_parquet(output)
    else:
        frame.to_csv(output)


@app.command()
def fetch(
    asset: Optional[str] = typer.Argument(None, help="Base asset or full symbol (e.g. BTC, BTC-USDT)"),
    exchange: str = typer.Option("binance", "--exchange", "-e", help="Exchange id"),
    market: str = typer.Option("futures", "--market", "-m", help="spot or futures"),
    timeframe: str = typer.Option("1h", "--timeframe", "-t", help="Timeframe label (1m, 15m, 1h, 1d, ...)"),
    start: Optional[str] = typer.Option(None, "--start", help="ISO start (UTC if no offset)"),
    end: Optional[str] = typer.Option(None, "--end", help="ISO end (UTC if no offset)"),
    quote: str = typer.Option("USDT", "--quote", "-q", help="Quote asset"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", exists=True, help="YAML chart data config"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write candles to .csv or .parquet"),
) -> None:
    """Load candles through the gap-filling loader and print a summary.

    Example:
        kwant-chart fetch BTC --exchange okx --market spot --timeframe 4h --start 2024-01-01
    """
    try:
        if config is not None:
            chart_config = load_yaml_config(config, ChartDataConfig)
        else:
            if not asset:
                typer.echo("Error: ASSET is required when --config is not given.", err=True)
                raise typer.Exit(code=1)
            chart_config = ChartDataConfig(
                exchange=exchange,
                market=market,
                asset=asset,
                quote_asset=quote,
                timeframe=timeframe,
                start=start,
                end=end,
            )
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"[kwant-chart] {chart_config.source} {chart_config.asset}/{chart_config.quote_asset} "
        f"@ {chart_config.timeframe.label}"
    )

    try:
        candles = asyncio.run(_load(chart_config))
    except CandleDataError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    if candles and (chart_config.start or chart_config.end):
        # Drop the prefetch padding around the requested range.
        upper = _to_ms(chart_config.end) or candles[-1].end
        candles = normalize_candles(candles, _to_ms(chart_config.start), upper)

    if not candles:
        typer.echo("No candles returned.")
        return

    typer.echo(f"Candles: {len(candles)} ({_format_ms(candles[0].start)} -> {_format_ms(candles[-1].end)})")
    last = candles[-1]
    typer.echo(f"Last: O {last.open} H {last.high} L {last.low} C {last.close} V {last.volume}")

    if output is not None:
        _write_output(candles, output)
        typer.echo(f"Wrote {len(candles)} candles to {output}")


@app.command()
def intervals(
    exchange: str = typer.Option("binance", "--exchange", "-e", help="Exchange id"),
    market: Optional[str] = typer.Option(None, "--market", "-m", help="spot or futures (default: all)"),
) -> None:
    """Show how each timeframe resolves for an exchange (native or aggregated)."""
    try:
        exchange_id = ExchangeId(exchange.lower())
        markets = [MarketType(market.lower())] if market else list(MarketType)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)

    available = supported_markets(exchange_id)
    for market_type in markets:
        typer.echo(f"\n{EXCHANGE_LABELS[exchange_id]} {market_type.value}")
        if market_type not in available:
            typer.echo("   not supported")
            continue
        source = DataSource(exchange=exchange_id, market=market_type)
        for tf in TimeFrame:
            plan = resolve_interval(source, tf)
            if plan is None:
                typer.echo(f"   {tf.label:>4}  unsupported")
            elif plan.is_direct:
                typer.echo(f"   {tf.label:>4}  {plan.interval}")
            else:
                typer.echo(f"   {tf.label:>4}  {plan.interval} x{plan.group_size} ({plan.base_timeframe.label})")


@app.command()
def settings() -> None:
    """Print the effective loader settings after environment overrides."""
    for key, value in LoaderSettings.from_env().model_dump().items():
        typer.echo(f"{key}: {value}")


if __name__ == "__main__":  # pragma: no cover
    app()
