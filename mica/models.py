"""Data models for inflation measures, consensus results and data-quality reports."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum


class Provenance(Enum):
    REAL_AGENCY_DATA = "real_agency_data"
    ESTIMATED_PATTERN = "estimated_pattern"
    INTERPOLATED = "interpolated"
    LEGACY = "legacy"


# Substrings of a source string that identify official statistical data.
AGENCY_MARKERS = (
    "FRED",
    "ONS",
    "BLS",
    "Bureau of Labor Statistics",
    "Eurostat",
    "Statistics Canada",
    "Australian Bureau of Statistics",
    "ABS",
    "Bank of Japan",
    "Statistics Bureau of Japan",
    "Swiss Federal Statistical Office",
    "Stats NZ",
    "Statistics New Zealand",
    "Reserve Bank",
    "Federal Reserve",
    "ECB",
    "European Central Bank",
    "Official data",
    "official data",
    "Real data",
)


def classify_source(source: str) -> Provenance:
    """Provenance of a freshly parsed measure, decided from its source string."""
    if any(marker in source for marker in AGENCY_MARKERS):
        return Provenance.REAL_AGENCY_DATA
    return Provenance.ESTIMATED_PATTERN


@dataclass(slots=True)
class YearPoint:
    index_value: float
    inflation_factor: float
    year_over_year_change: float | None = None


@dataclass(slots=True)
class MeasureSeries:
    currency: str
    measure: str
    source: str
    last_updated: str | None
    points: dict[int, YearPoint]
    earliest_year: int | None = None
    latest_year: int | None = None
    provenance: Provenance = Provenance.ESTIMATED_PATTERN

    @property
    def years(self) -> list[int]:
        return sorted(self.points)

    @property
    def total_years(self) -> int:
        return len(self.points)


# --- Consensus ---


@dataclass(slots=True)
class MeasureInflation:
    adjusted_amount: float
    total_inflation_pct: float
    annualized_rate: float  # decimal, 0.032 = 3.2% a year
    actual_from_year: int
    actual_to_year: int


@dataclass(slots=True)
class MeasureContribution:
    measure: str
    adjusted_amount: float
    total_inflation_pct: float
    weight: float
    confidence: str
    provenance: Provenance
    actual_from_year: int
    actual_to_year: int


@dataclass(slots=True)
class ConsensusResult:
    currency: str
    amount: float
    from_year: int
    to_year: int
    adjusted_amount: float
    total_inflation_pct: float
    annualized_rate: float
    actual_from_year: int
    actual_to_year: int
    measures: list[MeasureContribution] = field(default_factory=list)
    coverage_mismatch: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PercentRange:
    min: float
    max: float
    difference: float


@dataclass(slots=True)
class MeasureSpread:
    spread_pct: float
    standard_deviation: float
    range: PercentRange
    agreement_level: str
    description: str


@dataclass(slots=True)
class DataQualityScore:
    score: int
    total_measures: int
    real_data_measures: int
    estimated_measures: int
    average_years_coverage: int


# --- Validation ---


@dataclass(slots=True)
class Outlier:
    year: int
    value: float
    reason: str


@dataclass(slots=True)
class Gap:
    start: int
    end: int
    length: int


@dataclass(slots=True)
class ValidationDetails:
    data_points: int = 0
    years_covered: int = 0
    missing_years: list[int] = field(default_factory=list)
    outliers: list[Outlier] = field(default_factory=list)
    gaps: list[Gap] = field(default_factory=list)


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    score: float
    details: ValidationDetails = field(default_factory=ValidationDetails)


@dataclass(slots=True)
class HealthReport:
    currency: str
    measures: dict[str, ValidationResult]
    overall_score: int
    critical_issues: list[str]
    recommendations: list[str]
    last_validated: str


@dataclass(slots=True)
class QualitySummary:
    overall_health: str
    alerts: list[str]
    total_currencies: int
    healthy_currencies: int
    critical_issues: int
    average_score: int


# --- Loading and recovery ---


@dataclass(slots=True)
class LoadResult:
    measures: dict[str, MeasureSeries]
    errors: list[tuple[str, Exception]] = field(default_factory=list)
    fallback_used: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FallbackLoadResult:
    measures: dict[str, MeasureSeries]
    has_real_data: bool
    fallback_used: bool
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RecoveryContext:
    currency: str
    measure: str | None = None
    original: MeasureSeries | None = None
    retry_count: int = 0
    max_retries: int = 3
    reload: Callable[[], Awaitable[dict[str, MeasureSeries]]] | None = None


@dataclass(slots=True)
class RecoveryResult:
    success: bool
    strategy: str
    message: str
    fallback_used: bool = False
    measures: dict[str, MeasureSeries] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def series(self) -> MeasureSeries | None:
        if len(self.measures) != 1:
            return None
        return next(iter(self.measures.values()))


def has_real_data(measures: dict[str, MeasureSeries]) -> bool:
    return any(s.provenance is Provenance.REAL_AGENCY_DATA for s in measures.values())


# --- Currency registry ---


@dataclass(slots=True)
class CurrencyInfo:
    code: str
    name: str
    symbol: str
    start_year: int
    average_rate: float


DEFAULT_START_YEAR = 1950
DEFAULT_AVERAGE_RATE = 0.03


def _build_currency_map() -> dict[str, CurrencyInfo]:
    entries = [
        CurrencyInfo("USD", "US Dollar", "$", 1913, 0.032),
        CurrencyInfo("GBP", "British Pound", "£", 1947, 0.038),
        CurrencyInfo("EUR", "Euro", "€", 1996, 0.021),
        CurrencyInfo("CAD", "Canadian Dollar", "C$", 1914, 0.032),
        CurrencyInfo("CHF", "Swiss Franc", "Fr", 1914, 0.018),
        CurrencyInfo("JPY", "Japanese Yen", "¥", 1946, 0.025),
        CurrencyInfo("AUD", "Australian Dollar", "A$", 1948, 0.034),
        CurrencyInfo("NZD", "New Zealand Dollar", "NZ$", 1914, 0.038),
    ]
    return {e.code: e for e in entries}


CURRENCIES = _build_currency_map()


def start_year_for(currency: str) -> int:
    info = CURRENCIES.get(currency)
    return info.start_year if info else DEFAULT_START_YEAR


def average_rate_for(currency: str) -> float:
    info = CURRENCIES.get(currency)
    return info.average_rate if info else DEFAULT_AVERAGE_RATE


# Consensus weights, following each central bank's preferred measures.
MEASURE_WEIGHTS: dict[str, dict[str, float]] = {
    "USD": {
        "cpi": 0.25,
        "core_cpi": 0.2,
        "chained_cpi": 0.15,
        "pce": 0.15,
        "core_pce": 0.1,  # Fed target
        "ppi": 0.1,
        "gdp_deflator": 0.05,
    },
    "GBP": {
        "cpi": 0.3,
        "core_cpi": 0.25,
        "cpih": 0.2,  # ONS preferred
        "rpi": 0.1,
        "ppi_output": 0.1,
        "gdp_deflator": 0.05,
    },
    "EUR": {
        "hicp": 0.35,  # ECB target
        "core_hicp": 0.25,
        "services_hicp": 0.15,
        "goods_hicp": 0.1,
        "ppi": 0.1,
        "gdp_deflator": 0.05,
    },
    "CAD": {
        "cpi": 0.3,
        "core_cpi": 0.2,
        "cpi_trim": 0.2,  # Bank of Canada preferred
        "cpi_median": 0.15,
        "ippi": 0.1,
        "gdp_deflator": 0.05,
    },
    "CHF": {
        "cpi": 0.4,  # SNB target
        "core_cpi": 0.25,
        "ppi": 0.2,
        "gdp_deflator": 0.1,
        "housing_index": 0.05,
    },
    "JPY": {
        "cpi": 0.3,
        "core_cpi": 0.25,  # BOJ target, excludes fresh food
        "core_core_cpi": 0.2,
        "cgpi": 0.15,
        "gdp_deflator": 0.1,
    },
    "AUD": {
        "cpi": 0.3,
        "trimmed_mean_cpi": 0.25,  # RBA preferred
        "weighted_median_cpi": 0.2,
        "core_cpi": 0.15,
        "ppi": 0.05,
        "gdp_deflator": 0.05,
    },
    "NZD": {
        "cpi": 0.35,
        "core_cpi": 0.25,
        "non_tradables_cpi": 0.2,  # RBNZ focus
        "tradables_cpi": 0.1,
        "ppi": 0.05,
        "gdp_deflator": 0.05,
    },
}

SUPPORTED_CURRENCIES = list(MEASURE_WEIGHTS.keys())


def primary_measure_for(currency: str) -> str:
    """Measure a single degraded series stands in for: ``cpi`` where weighted, else the heaviest."""
    weights = MEASURE_WEIGHTS.get(currency)
    if not weights or "cpi" in weights:
        return "cpi"
    return max(weights, key=lambda name: weights[name])


_DISPLAY_NAMES = {
    "cpi": "Consumer Price Index (CPI)",
    "core_cpi": "Core CPI",
    "chained_cpi": "Chained CPI",
    "pce": "Personal Consumption Expenditures (PCE)",
    "core_pce": "Core PCE",
    "ppi": "Producer Price Index (PPI)",
    "gdp_deflator": "GDP Deflator",
    "trimmed_mean_cpi": "Trimmed Mean CPI",
    "hicp": "Harmonized Index of Consumer Prices",
    "core_hicp": "Core HICP",
    "cpih": "CPI including Housing (CPIH)",
    "rpi": "Retail Price Index (RPI)",
    "ppi_input": "PPI Input Prices",
    "ppi_output": "PPI Output Prices",
    "cpi_trim": "CPI-trim",
    "cpi_median": "CPI-median",
    "ippi": "Industrial Product Price Index",
    "rmpi": "Raw Materials Price Index",
    "cgpi": "Corporate Goods Price Index",
    "sppi": "Services Producer Price Index",
    "core_core_cpi": "Core-Core CPI",
    "weighted_median_cpi": "Weighted Median CPI",
    "tradables_cpi": "CPI Tradables",
    "non_tradables_cpi": "CPI Non-tradables",
    "services_hicp": "HICP Services",
    "goods_hicp": "HICP Goods",
    "housing_index": "Housing Price Index",
}

_DESCRIPTIONS = {
    "cpi": "Standard measure of inflation for consumer goods and services",
    "core_cpi": "CPI excluding volatile food and energy prices",
    "chained_cpi": "Accounts for consumer substitution behavior",
    "pce": "Federal Reserve's preferred inflation measure",
    "core_pce": "PCE excluding food and energy, closely watched by Fed",
    "ppi": "Measures wholesale price changes",
    "gdp_deflator": "Measures price changes across the entire economy, including government and investment",
    "trimmed_mean_cpi": "Excludes extreme price movements for a more stable measure",
    "hicp": "Harmonized measure used across EU countries",
    "core_hicp": "HICP excluding energy and unprocessed food",
    "cpih": "UK's preferred measure including owner-occupiers' housing costs",
    "rpi": "Traditional UK measure, still used for some purposes",
    "cpi_trim": "Bank of Canada's preferred core measure",
    "cpi_median": "Median of price changes across CPI components",
    "cgpi": "Japan's broad measure of producer prices",
    "weighted_median_cpi": "RBA's preferred underlying inflation measure",
    "tradables_cpi": "Prices of goods that can be traded internationally",
    "non_tradables_cpi": "Prices of domestic services and non-traded goods",
}


def get_measure_display_name(measure: str) -> str:
    if measure in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[measure]
    return measure.replace("_", " ").title()


def get_measure_description(measure: str) -> str:
    return _DESCRIPTIONS.get(measure, "Inflation measure")
