"""Shared builders for measure series and on-disk measure documents."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from mica.models import MeasureSeries, YearPoint, classify_source


def _factors(years, start: float, rate: float) -> dict[int, float]:
    return {y: start * (1 + rate) ** i for i, y in enumerate(years)}


@pytest.fixture
def make_series():
    """Build a MeasureSeries from explicit factors or a constant growth rate."""

    def build(
        years=range(2000, 2024),
        factors: dict[int, float] | None = None,
        rate: float = 0.03,
        currency: str = "USD",
        measure: str = "cpi",
        source: str = "FRED",
        last_updated: str | None = "now",
        yoy: dict[int, float | None] | None = None,
    ) -> MeasureSeries:
        years = list(years)
        factors = factors if factors is not None else _factors(years, 1.0, rate)
        points = {}
        for y, f in factors.items():
            change = yoy.get(y) if yoy is not None else None
            points[y] = YearPoint(index_value=f * 100, inflation_factor=f, year_over_year_change=change)
        return MeasureSeries(
            currency=currency,
            measure=measure,
            source=source,
            last_updated=datetime.now(UTC).isoformat() if last_updated == "now" else last_updated,
            points=points,
            earliest_year=min(factors) if factors else None,
            latest_year=max(factors) if factors else None,
            provenance=classify_source(source),
        )

    return build


@pytest.fixture
def write_measure():
    """Write a measure document into a store directory."""

    def write(
        root: Path,
        currency: str,
        measure: str,
        years=range(2000, 2024),
        rate: float = 0.03,
        source: str = "US Bureau of Labor Statistics via FRED",
    ) -> Path:
        years = list(years)
        factors = _factors(years, 1.0, rate)
        doc = {
            "currency": currency,
            "measure": measure,
            "source": source,
            "last_updated": datetime.now(UTC).isoformat(),
            "data": {
                str(y): {
                    "index_value": f * 100,
                    "inflation_factor": f,
                    "year_over_year_change": rate * 100 if i else None,
                }
                for i, (y, f) in enumerate(factors.items())
            },
            "earliest_year": str(years[0]),
            "latest_year": str(years[-1]),
            "total_years": len(years),
        }
        path = root / "measures" / f"{currency.lower()}-{measure}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(doc))
        return path

    return write


@pytest.fixture
def write_legacy():
    def write(root: Path, currency: str, data: dict[str, object], source: str = "Legacy CPI") -> Path:
        path = root / f"{currency.lower()}-inflation.json"
        path.write_text(
            json.dumps(
                {
                    "data": data,
                    "source": source,
                    "lastUpdated": datetime.now(UTC).isoformat(),
                    "earliest": min(data),
                    "latest": max(data),
                }
            )
        )
        return path

    return write
