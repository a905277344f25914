"""Load every weighted measure for a currency, with caching and recovery.

Data flow per currency:
    1. Check cache (skip if fresh)
    2. Fetch all measures in parallel, validating each
    3. On failure, hand the error to the recovery engine
    4. Cache whatever came back
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from mica.cache import MeasureCache
from mica.errors import DataError, DataValidationError, NoValidMeasures, UnknownCurrency
from mica.models import (
    MEASURE_WEIGHTS,
    FallbackLoadResult,
    LoadResult,
    MeasureSeries,
    RecoveryContext,
    RecoveryResult,
    has_real_data,
)
from mica.recovery import InterpolationStrategy, RecoveryEngine, default_engine
from mica.store import BlobStore, load_measure
from mica.validation import ensure_valid, validate_inflation_measure

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


async def fetch_measures(
    store: BlobStore,
    currency: str,
    weights: dict[str, dict[str, float]] | None = None,
) -> LoadResult:
    """Fetch every measure weighted for ``currency`` in parallel, unvalidated.

    One measure failing does not abort the others; failures are returned in
    ``LoadResult.errors``.
    """
    table = (weights if weights is not None else MEASURE_WEIGHTS).get(currency)
    if table is None:
        raise UnknownCurrency(currency)

    names = list(table)
    results = await asyncio.gather(
        *(load_measure(store, currency, name) for name in names),
        return_exceptions=True,
    )

    measures: dict[str, MeasureSeries] = {}
    errors: list[tuple[str, Exception]] = []

    for name, result in zip(names, results, strict=True):
        if isinstance(result, DataError):
            logger.warning("Failed to load %s %s: %s", currency, name, result)
            errors.append((name, result))
            continue
        if isinstance(result, BaseException):
            raise result
        measures[name] = result

    return LoadResult(measures=measures, errors=errors)


async def _repair(
    engine: RecoveryEngine,
    error: DataValidationError,
    series: MeasureSeries,
    now: datetime | None,
) -> RecoveryResult | None:
    """Interpolated replacement for ``series`` that passes validation, if any."""
    recovery = await engine.recover(
        error,
        RecoveryContext(currency=series.currency, measure=series.measure, original=series),
    )
    if not recovery.success or recovery.strategy != InterpolationStrategy.name:
        return None
    if recovery.series is None:
        return None
    if not validate_inflation_measure(recovery.series, now=now).is_valid:
        return None
    return recovery


async def load_all_measures(
    store: BlobStore,
    currency: str,
    weights: dict[str, dict[str, float]] | None = None,
    now: datetime | None = None,
    engine: RecoveryEngine | None = None,
) -> LoadResult:
    """Fetch and validate every measure weighted for ``currency``.

    With an ``engine``, a series failing validation is handed to it first and
    kept if interpolation repairs it. Other failing series are dropped and
    reported in ``errors``. Raises ``NoValidMeasures`` if none survive.
    """
    fetched = await fetch_measures(store, currency, weights)

    measures: dict[str, MeasureSeries] = {}
    errors = list(fetched.errors)
    warnings: list[str] = []
    for name, series in fetched.measures.items():
        try:
            ensure_valid(series, now=now)
        except DataValidationError as exc:
            repaired = None
            if engine is not None:
                repaired = await _repair(engine, exc, series, now)
            if repaired is not None:
                logger.info("Repaired %s %s: %s", currency, name, repaired.message)
                measures[name] = repaired.series
                warnings.extend(f"{name}: {w}" for w in repaired.warnings)
                continue
            logger.warning("Invalid data for %s %s, skipping: %s", currency, name, exc)
            errors.append((name, exc))
            continue
        measures[name] = series

    if not measures:
        raise NoValidMeasures(currency, errors)

    logger.info(
        "Loaded %d of %d measures for %s",
        len(measures),
        len(measures) + len(errors),
        currency,
    )
    return LoadResult(
        measures=measures,
        errors=errors,
        fallback_used=bool(warnings),
        warnings=warnings,
    )


async def load_currency_measures_with_fallback(
    currency: str,
    store: BlobStore,
    cache: MeasureCache,
    engine: RecoveryEngine | None = None,
) -> FallbackLoadResult:
    """Measures for ``currency``, degrading to recovered data when loading fails.

    Never raises for data problems: when every recovery strategy fails the
    result has no measures and ``fallback_used`` set.
    """
    cached = cache.get(currency)
    if cached is not None:
        return FallbackLoadResult(
            measures=cached.measures,
            has_real_data=cached.has_real_data,
            fallback_used=cached.fallback_used,
            warnings=list(cached.warnings),
        )

    engine = engine or default_engine(store)

    async def reload() -> dict[str, MeasureSeries]:
        return (await load_all_measures(store, currency, engine=engine)).measures

    try:
        loaded = await load_all_measures(store, currency, engine=engine)
    except DataError as exc:
        logger.warning("Failed to load measure data for %s, recovering: %s", currency, exc)
        recovery = await engine.recover(
            exc,
            RecoveryContext(
                currency=currency,
                max_retries=DEFAULT_MAX_RETRIES,
                reload=reload,
            ),
        )
        if not recovery.success:
            return FallbackLoadResult(
                measures={},
                has_real_data=False,
                fallback_used=True,
                warnings=[recovery.message],
            )
        entry = cache.put(
            currency,
            recovery.measures,
            has_real_data=has_real_data(recovery.measures),
            fallback_used=recovery.fallback_used,
            warnings=recovery.warnings,
        )
        return FallbackLoadResult(
            measures=entry.measures,
            has_real_data=entry.has_real_data,
            fallback_used=entry.fallback_used,
            warnings=list(entry.warnings),
        )

    entry = cache.put(
        currency,
        loaded.measures,
        has_real_data=has_real_data(loaded.measures),
        fallback_used=loaded.fallback_used,
        warnings=loaded.warnings,
    )
    return FallbackLoadResult(
        measures=entry.measures,
        has_real_data=entry.has_real_data,
        fallback_used=entry.fallback_used,
        warnings=list(entry.warnings),
    )
