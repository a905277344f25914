"""Output formatters for table, JSON, and CSV."""

from __future__ import annotations

import csv
import io
import json
from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

from mica.models import (
    CURRENCIES,
    ConsensusResult,
    HealthReport,
    MeasureSpread,
    get_measure_display_name,
)


def _fmt_pct(val: float, plus_sign: bool = True) -> str:
    """Format a percentage value with 2 decimal places."""
    if plus_sign and val > 0:
        return f"+{val:.2f}%"
    return f"{val:.2f}%"


def _fmt_currency_value(value: float, currency: str) -> str:
    info = CURRENCIES.get(currency)
    prefix = info.symbol if info else f"{currency} "
    return f"{prefix}{value:,.2f}"


def _render(*renderables: Any) -> str:
    buf = io.StringIO()
    console = Console(file=buf, width=120, no_color=True)
    for r in renderables:
        console.print(r)
    return buf.getvalue()


def format_consensus_table(result: ConsensusResult, spread: MeasureSpread | None = None) -> str:
    """Format a consensus result as a Rich table rendered to string."""
    header = (
        f"Consensus Inflation: {result.currency}\n"
        f"==========================\n"
        f"Period: {result.actual_from_year} → {result.actual_to_year}"
        f" (requested {result.from_year} → {result.to_year})\n"
        f"{_fmt_currency_value(result.amount, result.currency)} then is worth "
        f"{_fmt_currency_value(result.adjusted_amount, result.currency)} now\n"
        f"Total inflation: {_fmt_pct(result.total_inflation_pct)}, "
        f"annual average: {_fmt_pct(result.annualized_rate * 100)}\n"
    )

    table = Table(box=box.SIMPLE_HEAD, pad_edge=False)
    table.add_column("Measure", style="bold")
    table.add_column("Weight", justify="right")
    table.add_column("Adjusted", justify="right")
    table.add_column("Inflation", justify="right")
    table.add_column("Years", justify="right")
    table.add_column("Confidence")

    for m in result.measures:
        table.add_row(
            get_measure_display_name(m.measure),
            f"{m.weight * 100:.1f}%",
            _fmt_currency_value(m.adjusted_amount, result.currency),
            _fmt_pct(m.total_inflation_pct),
            f"{m.actual_from_year}-{m.actual_to_year}",
            m.confidence,
        )

    footer = ""
    if spread is not None:
        footer += (
            f"\nAgreement: {spread.agreement_level} "
            f"(spread {spread.spread_pct:.2f}%) - {spread.description}"
        )
    if result.warnings:
        footer += "\n\nWarnings:"
        for w in result.warnings:
            footer += f"\n  ⚠ {w}"

    return _render(header, table, footer)


def format_consensus_json(result: ConsensusResult, spread: MeasureSpread | None = None) -> str:
    data: dict[str, Any] = {
        "currency": result.currency,
        "amount": round(result.amount, 2),
        "requested": {"from_year": result.from_year, "to_year": result.to_year},
        "actual": {"from_year": result.actual_from_year, "to_year": result.actual_to_year},
        "adjusted_amount": round(result.adjusted_amount, 2),
        "total_inflation_pct": round(result.total_inflation_pct, 2),
        "annual_average_pct": round(result.annualized_rate * 100, 2),
        "coverage_mismatch": result.coverage_mismatch,
        "measures": [
            {
                "measure": m.measure,
                "adjusted_amount": round(m.adjusted_amount, 2),
                "total_inflation_pct": round(m.total_inflation_pct, 2),
                "weight": round(m.weight, 4),
                "confidence": m.confidence,
                "provenance": m.provenance.value,
                "actual_from_year": m.actual_from_year,
                "actual_to_year": m.actual_to_year,
            }
            for m in result.measures
        ],
    }
    if spread is not None:
        data["spread"] = {
            "spread_pct": round(spread.spread_pct, 2),
            "standard_deviation": round(spread.standard_deviation, 2),
            "min": round(spread.range.min, 2),
            "max": round(spread.range.max, 2),
            "agreement_level": spread.agreement_level,
        }
    if result.warnings:
        data["warnings"] = result.warnings
    return json.dumps(data, indent=2)


def format_consensus_csv(result: ConsensusResult) -> str:
    buf = io.StringIO()
    fields = [
        "measure",
        "weight",
        "adjusted_amount",
        "total_inflation_pct",
        "actual_from_year",
        "actual_to_year",
        "confidence",
    ]
    writer = csv.DictWriter(buf, fieldnames=fields)
    writer.writeheader()
    for m in result.measures:
        writer.writerow(
            {
                "measure": m.measure,
                "weight": f"{m.weight:.4f}",
                "adjusted_amount": f"{m.adjusted_amount:.2f}",
                "total_inflation_pct": f"{m.total_inflation_pct:.2f}",
                "actual_from_year": m.actual_from_year,
                "actual_to_year": m.actual_to_year,
                "confidence": m.confidence,
            }
        )
    writer.writerow(
        {
            "measure": "consensus",
            "weight": "1.0000",
            "adjusted_amount": f"{result.adjusted_amount:.2f}",
            "total_inflation_pct": f"{result.total_inflation_pct:.2f}",
            "actual_from_year": result.actual_from_year,
            "actual_to_year": result.actual_to_year,
            "confidence": "",
        }
    )
    return buf.getvalue()


def format_health_table(report: HealthReport) -> str:
    header = (
        f"Data Health: {report.currency}\n"
        f"Overall score: {report.overall_score}/100\n"
    )

    table = Table(box=box.SIMPLE_HEAD, pad_edge=False)
    table.add_column("Measure", style="bold")
    table.add_column("Valid")
    table.add_column("Score", justify="right")
    table.add_column("Points", justify="right")
    table.add_column("Missing", justify="right")
    table.add_column("Outliers", justify="right")

    for name, v in report.measures.items():
        table.add_row(
            name,
            "yes" if v.is_valid else "no",
            f"{v.score:.0f}",
            str(v.details.data_points),
            str(len(v.details.missing_years)),
            str(len(v.details.outliers)),
        )

    footer = ""
    if report.critical_issues:
        footer += "\nCritical issues:"
        for issue in report.critical_issues:
            footer += f"\n  ✗ {issue}"
    if report.recommendations:
        footer += "\n\nRecommendations:"
        for rec in report.recommendations:
            footer += f"\n  • {rec}"

    return _render(header, table, footer)


def format_health_json(report: HealthReport) -> str:
    data = {
        "currency": report.currency,
        "overall_score": report.overall_score,
        "last_validated": report.last_validated,
        "measures": {
            name: {
                "is_valid": v.is_valid,
                "score": round(v.score, 2),
                "errors": v.errors,
                "warnings": v.warnings,
                "data_points": v.details.data_points,
                "missing_years": v.details.missing_years,
                "gaps": [
                    {"start": g.start, "end": g.end, "length": g.length}
                    for g in v.details.gaps
                ],
                "outliers": [
                    {"year": o.year, "value": o.value, "reason": o.reason}
                    for o in v.details.outliers
                ],
            }
            for name, v in report.measures.items()
        },
        "critical_issues": report.critical_issues,
        "recommendations": report.recommendations,
    }
    return json.dumps(data, indent=2)
