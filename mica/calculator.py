"""Inflation adjustment for single measures and the weighted consensus across them."""

from __future__ import annotations

import logging
import math

from mica.errors import CalculationError, NoWeightsForCurrency
from mica.models import (
    MEASURE_WEIGHTS,
    ConsensusResult,
    DataQualityScore,
    MeasureContribution,
    MeasureInflation,
    MeasureSeries,
    MeasureSpread,
    PercentRange,
    Provenance,
)

logger = logging.getLogger(__name__)


def cumulative_inflation(factor_start: float, factor_end: float) -> float:
    """Cumulative inflation as a decimal (0.074 = 7.4%)."""
    return (factor_end / factor_start) - 1


def annualized_inflation(factor_start: float, factor_end: float, years: float) -> float:
    """Annualized inflation rate."""
    if years <= 0:
        raise ValueError("Period must be positive")
    return float((factor_end / factor_start) ** (1 / years)) - 1


def adjust_amount(amount: float, factor_start: float, factor_end: float) -> float:
    """Value of ``amount`` at the start year, expressed in end-year money."""
    return amount * factor_end / factor_start


# --- Year resolution ---


def resolve_from_year(series: MeasureSeries, requested: int) -> int:
    """Start year actually usable for ``series``; never earlier than requested."""
    if requested in series.points:
        return requested
    earliest = series.earliest_year
    if earliest is not None and earliest in series.points and earliest >= requested:
        return earliest
    later = [y for y in series.points if y >= requested]
    if later:
        return min(later)
    raise CalculationError(
        f"No {series.currency} {series.measure} data at or after {requested}"
    )


def resolve_to_year(series: MeasureSeries, requested: int) -> int:
    """End year actually usable for ``series``: requested, metadata latest, or max present."""
    if requested in series.points:
        return requested
    latest = series.latest_year
    if latest is not None and latest in series.points:
        return latest
    if series.points:
        return max(series.points)
    raise CalculationError(f"No {series.currency} {series.measure} data available")


def calculate_inflation_for_measure(
    series: MeasureSeries,
    from_year: int,
    to_year: int,
    amount: float,
) -> MeasureInflation:
    if amount <= 0:
        raise ValueError("Amount must be positive")

    actual_from = resolve_from_year(series, from_year)
    actual_to = resolve_to_year(series, to_year)
    start = series.points.get(actual_from)
    end = series.points.get(actual_to)
    if start is None or end is None or start.inflation_factor <= 0:
        raise CalculationError(
            f"Data not available for {series.currency} {series.measure} from {from_year} "
            f"to {to_year}. Available range: {series.earliest_year} to {series.latest_year}"
        )

    adjusted = adjust_amount(amount, start.inflation_factor, end.inflation_factor)
    years = actual_to - actual_from
    return MeasureInflation(
        adjusted_amount=adjusted,
        total_inflation_pct=(adjusted - amount) / amount * 100,
        annualized_rate=annualized_inflation(amount, adjusted, years) if years > 0 else 0.0,
        actual_from_year=actual_from,
        actual_to_year=actual_to,
    )


def confidence_for(series: MeasureSeries) -> str:
    return "High" if series.provenance is Provenance.REAL_AGENCY_DATA else "Medium"


# --- Consensus ---


def calculate_consensus_inflation(
    measures: dict[str, MeasureSeries],
    currency: str,
    from_year: int,
    to_year: int,
    amount: float,
    weights: dict[str, dict[str, float]] | None = None,
) -> ConsensusResult:
    """Weighted average of every measure's inflation adjustment.

    Measures that cannot cover the requested years are skipped and the
    remaining weights renormalized to sum to 1. The reported actual years
    come from the first measure that could be calculated; each contribution
    also carries its own.
    """
    table = (weights if weights is not None else MEASURE_WEIGHTS).get(currency)
    if not table:
        raise NoWeightsForCurrency(currency)
    if amount <= 0:
        raise ValueError("Amount must be positive")

    contributions: list[MeasureContribution] = []
    weighted_adjusted = 0.0
    weighted_pct = 0.0
    total_weight = 0.0
    actual_from = from_year
    actual_to = to_year

    for name, series in measures.items():
        weight = table.get(name, 0.0)
        if not weight:
            continue
        try:
            result = calculate_inflation_for_measure(series, from_year, to_year, amount)
        except CalculationError as exc:
            logger.warning("Failed to calculate %s %s: %s", currency, name, exc)
            continue

        if not contributions:
            actual_from = result.actual_from_year
            actual_to = result.actual_to_year

        contributions.append(
            MeasureContribution(
                measure=name,
                adjusted_amount=result.adjusted_amount,
                total_inflation_pct=result.total_inflation_pct,
                weight=weight,
                confidence=confidence_for(series),
                provenance=series.provenance,
                actual_from_year=result.actual_from_year,
                actual_to_year=result.actual_to_year,
            )
        )
        weighted_adjusted += result.adjusted_amount * weight
        weighted_pct += result.total_inflation_pct * weight
        total_weight += weight

    if not contributions:
        raise CalculationError(
            f"No {currency} measure covers {from_year} to {to_year}"
        )

    if total_weight != 1:
        weighted_adjusted /= total_weight
        weighted_pct /= total_weight
        for c in contributions:
            c.weight = c.weight / total_weight

    warnings: list[str] = []
    for c in contributions:
        if (c.actual_from_year, c.actual_to_year) != (actual_from, actual_to):
            warnings.append(
                f"{c.measure} uses {c.actual_from_year}-{c.actual_to_year} instead of "
                f"{actual_from}-{actual_to}"
            )

    years = actual_to - actual_from
    return ConsensusResult(
        currency=currency,
        amount=amount,
        from_year=from_year,
        to_year=to_year,
        adjusted_amount=weighted_adjusted,
        total_inflation_pct=weighted_pct,
        annualized_rate=(
            annualized_inflation(amount, weighted_adjusted, years) if years > 0 else 0.0
        ),
        actual_from_year=actual_from,
        actual_to_year=actual_to,
        measures=sorted(contributions, key=lambda c: c.weight, reverse=True),
        coverage_mismatch=bool(warnings),
        warnings=warnings,
    )


def calculate_measure_spread(contributions: list[MeasureContribution]) -> MeasureSpread:
    """How closely the individual measures agree on total inflation."""
    if not contributions:
        return MeasureSpread(0.0, 0.0, PercentRange(0.0, 0.0, 0.0), "High", "No measures available")

    values = [c.total_inflation_pct for c in contributions]
    if len(values) == 1:
        return MeasureSpread(
            0.0,
            0.0,
            PercentRange(values[0], values[0], 0.0),
            "High",
            "Only one measure available",
        )

    mean = sum(values) / len(values)
    std_dev = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
    spread = std_dev / abs(mean) * 100 if mean != 0 else 0.0

    if spread < 5:
        level, description = "High", "All measures closely agree - high confidence in results"
    elif spread < 15:
        level, description = (
            "Medium",
            "Measures show moderate variation - typical for multi-measure analysis",
        )
    else:
        level, description = (
            "Low",
            "Significant disagreement between measures - results should be interpreted with caution",
        )

    return MeasureSpread(
        spread_pct=spread,
        standard_deviation=std_dev,
        range=PercentRange(min(values), max(values), max(values) - min(values)),
        agreement_level=level,
        description=description,
    )


def get_data_quality_score(measures: dict[str, MeasureSeries]) -> DataQualityScore:
    """Blend of the share of agency data (70%) and years of coverage (30%)."""
    total = len(measures)
    real = sum(1 for s in measures.values() if s.provenance is Provenance.REAL_AGENCY_DATA)
    coverage = sum(s.total_years for s in measures.values())
    average_years = coverage / total if total else 0.0

    real_ratio = real / total if total else 0.0
    coverage_score = min(average_years / 50, 1)
    return DataQualityScore(
        score=round((real_ratio * 0.7 + coverage_score * 0.3) * 100),
        total_measures=total,
        real_data_measures=real,
        estimated_measures=total - real,
        average_years_coverage=round(average_years),
    )
