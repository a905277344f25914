"""Recovery strategies for failed loads and failed validation.

Strategies are tried in ascending priority until one succeeds:
    1. retry         - re-run the original load with exponential backoff
    2. legacy_data   - single simplified CPI series from the legacy document
    3. interpolation - fill gaps in the series that failed validation
    4. estimated_data - synthetic series from a long-run average rate
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime

from mica.errors import DataError, DataValidationError
from mica.models import (
    MEASURE_WEIGHTS,
    MeasureSeries,
    Provenance,
    RecoveryContext,
    RecoveryResult,
    YearPoint,
    average_rate_for,
    primary_measure_for,
    start_year_for,
)
from mica.store import BlobStore, load_legacy

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RecoveryStrategy:
    name = ""
    description = ""
    priority = 0

    def can_recover(self, error: Exception, context: RecoveryContext) -> bool:
        raise NotImplementedError

    async def recover(self, error: Exception, context: RecoveryContext) -> RecoveryResult:
        raise NotImplementedError

    def _failure(self, message: str, fallback_used: bool = True) -> RecoveryResult:
        return RecoveryResult(
            success=False, strategy=self.name, message=message, fallback_used=fallback_used
        )


class RetryStrategy(RecoveryStrategy):
    name = "retry"
    description = "Retry the original request with exponential backoff"
    priority = 1

    def __init__(self, sleep: Sleep = asyncio.sleep) -> None:
        self.sleep = sleep

    def can_recover(self, error: Exception, context: RecoveryContext) -> bool:
        return (
            context.reload is not None
            and context.retry_count < context.max_retries
            and getattr(error, "retryable", False)
        )

    async def recover(self, error: Exception, context: RecoveryContext) -> RecoveryResult:
        if context.reload is None:
            return self._failure("Nothing to retry: no reload configured", fallback_used=False)
        last: Exception = error
        for attempt in range(context.retry_count, context.max_retries):
            await self.sleep(2**attempt)
            logger.info("Retrying %s data load (attempt %d)", context.currency, attempt + 1)
            try:
                measures = await context.reload()
            except DataError as exc:
                last = exc
                if not exc.retryable:
                    break
                continue
            return RecoveryResult(
                success=True,
                strategy=self.name,
                message=f"Reloaded {context.currency} data on attempt {attempt + 1}",
                fallback_used=False,
                measures=measures,
            )
        return self._failure(f"Retries exhausted: {last}", fallback_used=False)


class LegacyDataStrategy(RecoveryStrategy):
    name = "legacy_data"
    description = "Fall back to legacy single inflation data file"
    priority = 2

    def __init__(self, store: BlobStore | None) -> None:
        self.store = store

    def can_recover(self, error: Exception, context: RecoveryContext) -> bool:
        # Replaces a whole currency, never a single failed series.
        return (
            self.store is not None
            and context.currency in MEASURE_WEIGHTS
            and context.original is None
        )

    async def recover(self, error: Exception, context: RecoveryContext) -> RecoveryResult:
        if self.store is None:
            return self._failure("No data store configured for legacy data")
        logger.info("Attempting legacy data fallback for %s", context.currency)
        try:
            series = await load_legacy(
                self.store, context.currency, primary_measure_for(context.currency)
            )
        except DataError as exc:
            return self._failure(f"Legacy data fallback failed: {exc}")
        if not series.points:
            return self._failure(f"Legacy data for {context.currency} has no usable points")

        return RecoveryResult(
            success=True,
            strategy=self.name,
            message=f"Successfully loaded legacy data for {context.currency}",
            fallback_used=True,
            measures={series.measure: series},
            warnings=["Using simplified CPI data only - multiple measures not available"],
        )


def interpolate_gaps(series: MeasureSeries) -> tuple[MeasureSeries, int]:
    """Copy of ``series`` with every inner missing year linearly interpolated."""
    years = series.years
    if len(years) < 2:
        raise ValueError("Insufficient data points for interpolation")

    points = dict(series.points)
    filled = 0
    for prev_year, next_year in zip(years, years[1:]):
        span = next_year - prev_year
        prev, nxt = series.points[prev_year], series.points[next_year]
        for year in range(prev_year + 1, next_year):
            progress = (year - prev_year) / span
            points[year] = YearPoint(
                index_value=prev.index_value + (nxt.index_value - prev.index_value) * progress,
                inflation_factor=(
                    prev.inflation_factor
                    + (nxt.inflation_factor - prev.inflation_factor) * progress
                ),
                year_over_year_change=None,
            )
            filled += 1

    repaired = replace(
        series,
        points=points,
        source=f"{series.source} (with {filled} interpolated points)",
        provenance=Provenance.INTERPOLATED,
    )
    return repaired, filled


class InterpolationStrategy(RecoveryStrategy):
    name = "interpolation"
    description = "Fill missing data points using interpolation"
    priority = 3

    def can_recover(self, error: Exception, context: RecoveryContext) -> bool:
        return isinstance(error, DataValidationError) and context.original is not None

    async def recover(self, error: Exception, context: RecoveryContext) -> RecoveryResult:
        if context.original is None:
            return self._failure("No series to interpolate")
        logger.info("Attempting data interpolation for %s", context.currency)
        try:
            repaired, filled = interpolate_gaps(context.original)
        except ValueError as exc:
            return self._failure(f"Interpolation failed: {exc}")

        return RecoveryResult(
            success=True,
            strategy=self.name,
            message=f"Successfully interpolated {filled} missing data points",
            fallback_used=True,
            measures={repaired.measure: repaired},
            warnings=[f"{filled} data points were estimated using linear interpolation"],
        )


class EstimatedDataStrategy(RecoveryStrategy):
    name = "estimated_data"
    description = "Generate estimated data based on historical patterns"
    priority = 4

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(UTC))

    def can_recover(self, error: Exception, context: RecoveryContext) -> bool:
        return True

    def estimate(self, currency: str, measure: str | None = None) -> MeasureSeries:
        now = self.clock()
        measure = measure or primary_measure_for(currency)
        start = start_year_for(currency)
        average = average_rate_for(currency)

        points: dict[int, YearPoint] = {}
        level = 100.0
        for year in range(start, now.year + 1):
            rate = average + (self.rng.random() - 0.5) * 0.01
            level *= 1 + rate
            points[year] = YearPoint(
                index_value=level,
                inflation_factor=level / 100,
                year_over_year_change=rate * 100,
            )

        return MeasureSeries(
            currency=currency,
            measure=measure,
            source="Estimated based on historical patterns",
            last_updated=now.isoformat(),
            points=points,
            earliest_year=start,
            latest_year=now.year,
            provenance=Provenance.ESTIMATED_PATTERN,
        )

    async def recover(self, error: Exception, context: RecoveryContext) -> RecoveryResult:
        logger.info("Generating estimated data for %s", context.currency)
        series = self.estimate(context.currency, context.measure)
        return RecoveryResult(
            success=True,
            strategy=self.name,
            message=f"Generated estimated data for {context.currency}",
            fallback_used=True,
            measures={series.measure: series},
            warnings=[
                "Using estimated data based on historical patterns",
                "Results may not reflect actual economic conditions",
                "Consider this data as approximate only",
            ],
        )


class RecoveryEngine:
    def __init__(self, strategies: list[RecoveryStrategy]) -> None:
        self.strategies = sorted(strategies, key=lambda s: s.priority)

    def _applicable(self, error: Exception, context: RecoveryContext) -> list[RecoveryStrategy]:
        applicable = []
        for strategy in self.strategies:
            try:
                if strategy.can_recover(error, context):
                    applicable.append(strategy)
            except Exception:
                logger.exception("Recovery strategy %s could not be checked", strategy.name)
        return applicable

    async def recover(self, error: Exception, context: RecoveryContext) -> RecoveryResult:
        """Try each applicable strategy in priority order. Never raises."""
        logger.info("Attempting error recovery for %s: %s", context.currency, error)

        strategies = self._applicable(error, context)
        if not strategies:
            return RecoveryResult(
                success=False,
                strategy="none",
                message="No recovery strategies available for this error",
            )

        for strategy in strategies:
            logger.info("Trying recovery strategy: %s", strategy.name)
            try:
                result = await strategy.recover(error, context)
            except Exception:
                logger.exception("Recovery strategy %s raised", strategy.name)
                continue
            if result.success:
                logger.info("Recovery successful using strategy: %s", strategy.name)
                return result
            logger.warning("Recovery strategy %s failed: %s", strategy.name, result.message)

        return RecoveryResult(
            success=False,
            strategy="all_failed",
            message="All recovery strategies failed",
            fallback_used=True,
        )


def default_engine(
    store: BlobStore | None = None,
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
) -> RecoveryEngine:
    return RecoveryEngine(
        [
            RetryStrategy(sleep),
            LegacyDataStrategy(store),
            InterpolationStrategy(),
            EstimatedDataStrategy(rng),
        ]
    )


async def recover_from_data_error(
    error: Exception,
    context: RecoveryContext,
    store: BlobStore | None = None,
) -> RecoveryResult:
    return await default_engine(store).recover(error, context)
