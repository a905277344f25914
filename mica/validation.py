"""Data-quality validation for inflation measures.

``validate_inflation_measure`` scores a single series (0-100) and lists its
errors, warnings, outliers and gaps. ``validate_currency_measures`` rolls the
per-measure results up into a ``HealthReport``.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime

from mica.errors import DataLoadError, DataValidationError
from mica.models import (
    Gap,
    HealthReport,
    MeasureSeries,
    Outlier,
    QualitySummary,
    ValidationDetails,
    ValidationResult,
)

MIN_DATA_POINTS = 10

VALIDATION_THRESHOLDS = {
    "max_year_over_year_change": 50.0,
    "min_year_over_year_change": -20.0,
    "max_inflation_factor": 1000.0,
    "min_inflation_factor": 0.01,
    "max_missing_years": 5,
    "outlier_z_score": 3.0,
    "stale_after_days": 90,
}


def _failed(errors: list[str], warnings: list[str], details: ValidationDetails) -> ValidationResult:
    return ValidationResult(False, errors, warnings, 0, details)


def find_gaps(years: list[int]) -> tuple[list[int], list[Gap]]:
    """Missing years between the first and last of ``years``, and their runs."""
    if not years:
        return [], []
    present = set(years)
    start, end = min(present), max(present)

    missing: list[int] = []
    gaps: list[Gap] = []
    gap_start: int | None = None
    for year in range(start, end + 1):
        if year not in present:
            missing.append(year)
            if gap_start is None:
                gap_start = year
        elif gap_start is not None:
            gaps.append(Gap(start=gap_start, end=year - 1, length=year - gap_start))
            gap_start = None
    return missing, gaps


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _check_freshness(series: MeasureSeries, now: datetime, warnings: list[str]) -> None:
    if not series.source.strip():
        warnings.append("Missing data source information")

    if not series.last_updated:
        warnings.append("Missing last updated timestamp")
        return

    updated = _parse_timestamp(series.last_updated)
    if updated is None:
        warnings.append(f"Unparseable last updated timestamp: {series.last_updated!r}")
        return

    days = (now - updated).total_seconds() / 86400
    if days > VALIDATION_THRESHOLDS["stale_after_days"]:
        warnings.append(f"Data may be stale: last updated {math.floor(days)} days ago")


def validate_inflation_measure(
    series: MeasureSeries,
    now: datetime | None = None,
) -> ValidationResult:
    now = now or datetime.now(UTC)
    errors: list[str] = []
    warnings: list[str] = []
    details = ValidationDetails()

    if not series.currency or not series.measure:
        errors.append("Missing required fields: currency or measure")
        return _failed(errors, warnings, details)

    years = series.years
    details.data_points = len(years)
    details.years_covered = len(years)

    if len(years) < MIN_DATA_POINTS:
        errors.append(f"Insufficient data points: {len(years)} (minimum: {MIN_DATA_POINTS})")

    if not years:
        errors.append("No valid year data found")
        return _failed(errors, warnings, details)

    expected_years = years[-1] - years[0] + 1
    missing, gaps = find_gaps(years)
    details.missing_years = missing
    details.gaps = gaps
    if len(missing) > VALIDATION_THRESHOLDS["max_missing_years"]:
        warnings.append(f"Large data gaps detected: {len(missing)} missing years")

    yoy_changes: list[tuple[int, float]] = []
    for year in years:
        point = series.points[year]
        factor = point.inflation_factor

        if not math.isfinite(factor):
            errors.append(f"Invalid inflation factor for year {year}: {factor}")
            continue
        if factor <= 0:
            errors.append(f"Non-positive inflation factor for year {year}: {factor}")
            continue

        if factor > VALIDATION_THRESHOLDS["max_inflation_factor"]:
            warnings.append(f"Extremely high inflation factor for year {year}: {factor}")
            details.outliers.append(Outlier(year, factor, "Extremely high inflation factor"))
        if factor < VALIDATION_THRESHOLDS["min_inflation_factor"]:
            warnings.append(f"Extremely low inflation factor for year {year}: {factor}")
            details.outliers.append(Outlier(year, factor, "Extremely low inflation factor"))

        yoy = point.year_over_year_change
        if yoy is None or not math.isfinite(yoy):
            continue
        if yoy > VALIDATION_THRESHOLDS["max_year_over_year_change"]:
            warnings.append(f"Extreme inflation for year {year}: {yoy}%")
            details.outliers.append(Outlier(year, yoy, "Extreme annual inflation"))
        if yoy < VALIDATION_THRESHOLDS["min_year_over_year_change"]:
            warnings.append(f"Extreme deflation for year {year}: {yoy}%")
            details.outliers.append(Outlier(year, yoy, "Extreme annual deflation"))
        yoy_changes.append((year, yoy))

    # z-score pass, population standard deviation
    if len(yoy_changes) >= 4:
        values = [v for _, v in yoy_changes]
        mean = sum(values) / len(values)
        std_dev = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
        if std_dev > 0:
            for year, value in yoy_changes:
                z = abs(value - mean) / std_dev
                if z > VALIDATION_THRESHOLDS["outlier_z_score"]:
                    details.outliers.append(
                        Outlier(year, value, f"Statistical outlier (z-score: {z:.2f})")
                    )

    _check_freshness(series, now, warnings)

    score = 100.0
    score -= len(errors) * 20
    score -= len(warnings) * 5
    score -= len(details.outliers) * 2
    score -= (1 - len(years) / expected_years) * 30
    if len(years) >= 50:
        score += 5
    if len(years) >= 100:
        score += 5
    score = max(0.0, min(100.0, score))

    return ValidationResult(
        is_valid=not errors and score >= 50,
        errors=errors,
        warnings=warnings,
        score=score,
        details=details,
    )


def ensure_valid(series: MeasureSeries, now: datetime | None = None) -> ValidationResult:
    """Validate ``series``, raising ``DataValidationError`` when it fails."""
    result = validate_inflation_measure(series, now=now)
    if not result.is_valid:
        reason = ", ".join(result.errors) or f"quality score {result.score:.0f} below 50"
        raise DataValidationError(
            f"Invalid data for {series.currency} {series.measure}: {reason}",
            currency=series.currency,
            measure=series.measure,
            validation=result,
        )
    return result


def validate_currency_measures(
    currency: str,
    measures: dict[str, MeasureSeries],
    now: datetime | None = None,
) -> HealthReport:
    now = now or datetime.now(UTC)
    results: dict[str, ValidationResult] = {}
    critical: list[str] = []
    recommendations: list[str] = []
    total_score = 0.0
    valid_count = 0

    for name, series in measures.items():
        try:
            result = validate_inflation_measure(series, now=now)
        except (TypeError, ValueError, AttributeError) as exc:
            critical.append(f"{name}: Validation failed - {exc}")
            results[name] = ValidationResult(False, [str(exc)], [], 0)
            continue

        results[name] = result
        if result.is_valid:
            valid_count += 1
            total_score += result.score
        else:
            critical.append(f"{name}: {', '.join(result.errors)}")

        if len(result.details.missing_years) > 10:
            recommendations.append(
                f"{name}: Consider interpolating missing years or finding alternative data source"
            )
        if len(result.details.outliers) > 5:
            recommendations.append(f"{name}: Review outlier data points for accuracy")
        if result.score < 70:
            recommendations.append(f"{name}: Data quality below acceptable threshold, needs attention")

    overall = round(total_score / valid_count) if valid_count else 0

    if valid_count == 0:
        critical.append("No valid measures found for currency")
        recommendations.append("Check data sources and collection processes")
    elif valid_count < len(measures) / 2:
        recommendations.append(
            "More than half of measures have issues - review data collection process"
        )
    if overall < 80:
        recommendations.append("Overall data quality needs improvement")

    return HealthReport(
        currency=currency,
        measures=results,
        overall_score=overall,
        critical_issues=critical,
        recommendations=recommendations,
        last_validated=now.isoformat(),
    )


def monitor_data_quality(reports: dict[str, HealthReport]) -> QualitySummary:
    """Summarize health reports across currencies into alerts and a grade."""
    alerts: list[str] = []
    total_score = 0
    healthy = 0
    critical = 0

    for currency, report in reports.items():
        total_score += report.overall_score
        critical += len(report.critical_issues)

        if report.overall_score >= 80:
            healthy += 1
        elif report.overall_score < 50:
            alerts.append(f"Critical: {currency} data quality is poor (score: {report.overall_score})")
        elif report.overall_score < 70:
            alerts.append(
                f"Warning: {currency} data quality needs attention (score: {report.overall_score})"
            )

        if report.critical_issues:
            alerts.append(f"{currency}: {len(report.critical_issues)} critical issues detected")

    average = round(total_score / len(reports)) if reports else 0
    if average >= 90:
        health = "excellent"
    elif average >= 80:
        health = "good"
    elif average >= 60:
        health = "fair"
    else:
        health = "poor"

    return QualitySummary(
        overall_health=health,
        alerts=alerts,
        total_currencies=len(reports),
        healthy_currencies=healthy,
        critical_issues=critical,
        average_score=average,
    )


def describe_data_error(error: Exception, context: str) -> str:
    """User-facing one-line description of a data error."""
    if isinstance(error, DataValidationError):
        return f"Data validation failed for {error.currency} {error.measure}: {error}"
    if isinstance(error, DataLoadError):
        where = f" from {error.source}" if error.source else ""
        return f"Failed to load data for {error.currency}{where}: {error}"
    return f"{context}: {error}"


def create_error_report(
    currency: str,
    errors: list[tuple[str, Exception]],
    now: datetime | None = None,
) -> str:
    now = now or datetime.now(UTC)
    lines = [
        f"Data Error Report for {currency}",
        f"Generated: {now.isoformat()}",
        f"Total Errors: {len(errors)}",
        "",
        "Errors:",
    ]
    for i, (measure, error) in enumerate(errors, start=1):
        lines.append(f"{i}. {measure}: {error}")
    return "\n".join(lines)
