"""CLI entry point for MICA."""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import click
import httpx

from mica import calculator, formatters, loader
from mica.cache import MeasureCache
from mica.models import (
    MEASURE_WEIGHTS,
    SUPPORTED_CURRENCIES,
    ConsensusResult,
    HealthReport,
    MeasureSpread,
    get_measure_description,
    get_measure_display_name,
)
from mica.store import DirectoryBlobStore, HttpBlobStore
from mica.validation import create_error_report, validate_currency_measures

# One cache per process; every command run in this process shares it.
_CACHE = MeasureCache()


def _validate_currency(raw: str) -> str:
    code = raw.strip().upper()
    if code not in MEASURE_WEIGHTS:
        supported = ", ".join(SUPPORTED_CURRENCIES)
        click.echo(f"Error: Currency {code!r} not supported. Supported: {supported}", err=True)
        sys.exit(1)
    return code


def _require_source(data_url: str | None, data_dir: str | None) -> None:
    if not data_url and not data_dir:
        click.echo(
            "Error: No data source. Use --data-url/--data-dir or set MICA_DATA_URL/MICA_DATA_DIR.",
            err=True,
        )
        sys.exit(1)


@asynccontextmanager
async def _open_store(data_url: str | None, data_dir: str | None):
    if data_dir:
        yield DirectoryBlobStore(Path(data_dir))
        return
    async with httpx.AsyncClient(timeout=30.0) as client:
        yield HttpBlobStore(client, data_url or "")


async def _run_consensus(
    currency: str,
    from_year: int,
    to_year: int,
    amount: float,
    data_url: str | None,
    data_dir: str | None,
) -> tuple[ConsensusResult, MeasureSpread]:
    async with _open_store(data_url, data_dir) as store:
        loaded = await loader.load_currency_measures_with_fallback(currency, store, _CACHE)

    if not loaded.measures:
        raise RuntimeError(f"No inflation data available for {currency}: {'; '.join(loaded.warnings)}")

    result = calculator.calculate_consensus_inflation(
        loaded.measures, currency, from_year, to_year, amount
    )
    result.warnings = loaded.warnings + result.warnings
    if loaded.fallback_used:
        result.warnings.insert(0, "Fallback data used - results are not from official statistics")
    return result, calculator.calculate_measure_spread(result.measures)


async def _run_health(
    currency: str,
    data_url: str | None,
    data_dir: str | None,
) -> tuple[HealthReport, list[tuple[str, Exception]]]:
    async with _open_store(data_url, data_dir) as store:
        fetched = await loader.fetch_measures(store, currency)
    return validate_currency_measures(currency, fetched.measures), fetched.errors


data_options = [
    click.option("--data-url", envvar="MICA_DATA_URL", help="Base URL of the measures data"),
    click.option(
        "--data-dir",
        envvar="MICA_DATA_DIR",
        type=click.Path(exists=True, file_okay=False),
        help="Local directory with the measures data",
    ),
]


def _with_data_options(func):
    for option in reversed(data_options):
        func = option(func)
    return func


@click.group()
@click.option("-v", "--verbose", count=True, help="Log progress (-vv for debug)")
def main(verbose: int) -> None:
    """Multi-measure Inflation Consensus Analyzer.

    Blends several inflation measures per currency into one weighted
    consensus adjustment, and reports on the quality of the underlying data.
    """
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@main.command()
@click.option("--currency", default="USD", help="Currency code (default: USD)")
@click.option("--from-year", required=True, type=int, help="Year the amount is from")
@click.option("--to-year", required=True, type=int, help="Year to express the amount in")
@click.option("--amount", default=100.0, type=float, help="Amount to adjust (default: 100)")
@click.option(
    "--output",
    "output_format",
    default="table",
    type=click.Choice(["table", "json", "csv"]),
    help="Output format",
)
@_with_data_options
def consensus(
    currency: str,
    from_year: int,
    to_year: int,
    amount: float,
    output_format: str,
    data_url: str | None,
    data_dir: str | None,
) -> None:
    """Weighted consensus inflation adjustment between two years."""
    code = _validate_currency(currency)

    if amount <= 0:
        click.echo("Error: --amount must be positive.", err=True)
        sys.exit(1)

    if to_year < from_year:
        click.echo("Error: --to-year must not be before --from-year.", err=True)
        sys.exit(1)

    _require_source(data_url, data_dir)

    try:
        result, spread = asyncio.run(
            _run_consensus(code, from_year, to_year, amount, data_url, data_dir)
        )
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(formatters.format_consensus_json(result, spread))
    elif output_format == "csv":
        click.echo(formatters.format_consensus_csv(result), nl=False)
    else:
        click.echo(formatters.format_consensus_table(result, spread), nl=False)


@main.command()
@click.option("--currency", default="USD", help="Currency code (default: USD)")
@click.option(
    "--output",
    "output_format",
    default="table",
    type=click.Choice(["table", "json"]),
    help="Output format",
)
@_with_data_options
def health(
    currency: str,
    output_format: str,
    data_url: str | None,
    data_dir: str | None,
) -> None:
    """Validate every measure for a currency and report data quality."""
    code = _validate_currency(currency)
    _require_source(data_url, data_dir)

    try:
        report, errors = asyncio.run(_run_health(code, data_url, data_dir))
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(formatters.format_health_json(report))
    else:
        click.echo(formatters.format_health_table(report), nl=False)

    if errors:
        click.echo(create_error_report(code, errors), err=True)


@main.command()
@click.option("--currency", default="USD", help="Currency code (default: USD)")
def measures(currency: str) -> None:
    """List the measures and consensus weights for a currency."""
    code = _validate_currency(currency)
    click.echo(f"Measures for {code}:")
    for name, weight in sorted(MEASURE_WEIGHTS[code].items(), key=lambda kv: -kv[1]):
        click.echo(f"  {weight * 100:5.1f}%  {get_measure_display_name(name)}")
        click.echo(f"          {get_measure_description(name)}")


if __name__ == "__main__":
    main()
