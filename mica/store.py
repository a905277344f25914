"""Read-only blob stores holding one JSON document per (currency, measure).

Layout under the store root:
    measures/usd-cpi.json
    measures/usd-core_pce.json
    usd-inflation.json          # legacy single-series CPI
"""

from __future__ import annotations

import json
import logging
import math
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Protocol

import httpx

from mica.errors import MalformedData, NotFound
from mica.models import MeasureSeries, Provenance, YearPoint, classify_source

logger = logging.getLogger(__name__)

LEGACY_TIMEOUT = 10.0


class BlobStore(Protocol):
    async def fetch(self, key: str, timeout: float | None = None) -> Any: ...


def measure_key(currency: str, measure: str) -> str:
    name = "_".join(measure.lower().split())
    return f"measures/{currency.lower()}-{name}.json"


def legacy_key(currency: str) -> str:
    return f"{currency.lower()}-inflation.json"


class HttpBlobStore:
    """Blob store served over HTTP, e.g. the site's static ``/data`` directory."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        timeout: float | None = None,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def fetch(self, key: str, timeout: float | None = None) -> Any:
        url = f"{self.base_url}/{key}"
        kwargs: dict[str, Any] = {}
        if timeout is not None or self.timeout is not None:
            kwargs["timeout"] = timeout if timeout is not None else self.timeout
        try:
            resp = await self.client.get(url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise NotFound(
                f"{key} not available: HTTP {status}", source=url, retryable=status >= 500
            ) from exc
        except httpx.HTTPError as exc:
            raise NotFound(f"{key} not available: {exc}", source=url, retryable=True) from exc

        try:
            return resp.json()
        except json.JSONDecodeError as exc:
            raise MalformedData(f"{key} is not valid JSON", source=url) from exc


class DirectoryBlobStore:
    """Blob store backed by a local directory of JSON files."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    async def fetch(self, key: str, timeout: float | None = None) -> Any:
        path = self.root / key
        if not path.is_file():
            raise NotFound(
                f"{key} not found in {self.root}", source=str(path), retryable=False
            )
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedData(f"{key} is not valid JSON", source=str(path)) from exc


# --- Parsing ---


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_year(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _parse_point(year: int, raw: Any) -> YearPoint:
    if not isinstance(raw, dict):
        raise MalformedData(f"Entry for {year} is not an object")

    factor = raw.get("inflation_factor")
    if not _is_number(factor):
        raise MalformedData(f"Entry for {year} has no numeric inflation_factor")

    index_value = raw.get("index_value")
    if index_value is None:
        index_value = factor * 100
    elif not _is_number(index_value):
        raise MalformedData(f"Entry for {year} has non-numeric index_value")

    yoy = raw.get("year_over_year_change")
    if yoy is not None and not _is_number(yoy):
        raise MalformedData(f"Entry for {year} has non-numeric year_over_year_change")

    return YearPoint(
        index_value=float(index_value),
        inflation_factor=float(factor),
        year_over_year_change=float(yoy) if yoy is not None else None,
    )


def parse_measure_series(payload: Any) -> MeasureSeries:
    """Check the shape of a measure document and build a ``MeasureSeries``.

    Only structure and types are checked here. Whether the values make sense
    is decided by ``mica.validation``.
    """
    if not isinstance(payload, dict):
        raise MalformedData("Measure document must be a JSON object")

    currency = payload.get("currency")
    measure = payload.get("measure")
    data = payload.get("data")
    if not isinstance(currency, str) or not isinstance(measure, str):
        raise MalformedData("Missing required fields: currency or measure")
    if not isinstance(data, dict):
        raise MalformedData(f"{currency} {measure}: data must be an object")

    source = payload.get("source") or ""
    if not isinstance(source, str):
        raise MalformedData(f"{currency} {measure}: source must be a string")
    last_updated = payload.get("last_updated")
    if last_updated is not None and not isinstance(last_updated, str):
        raise MalformedData(f"{currency} {measure}: last_updated must be a string")

    points: dict[int, YearPoint] = {}
    for raw_year, raw_point in data.items():
        year = _parse_year(raw_year)
        if year is None:
            raise MalformedData(f"{currency} {measure}: invalid year key {raw_year!r}")
        try:
            points[year] = _parse_point(year, raw_point)
        except MalformedData as exc:
            raise MalformedData(f"{currency} {measure}: {exc}") from exc

    return MeasureSeries(
        currency=currency,
        measure=measure,
        source=source,
        last_updated=last_updated,
        points=points,
        earliest_year=_parse_year(payload.get("earliest_year")),
        latest_year=_parse_year(payload.get("latest_year")),
        provenance=classify_source(source),
    )


def parse_legacy_series(currency: str, payload: Any, measure: str = "cpi") -> MeasureSeries:
    """Convert a legacy ``{data: {year: factor}}`` document into a single series.

    The legacy document is a CPI series; ``measure`` names the weighted measure
    it stands in for.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        raise MalformedData(f"Invalid legacy data structure for {currency}", currency=currency)

    points: dict[int, YearPoint] = {}
    for raw_year, raw_factor in payload["data"].items():
        year = _parse_year(raw_year)
        try:
            factor = float(raw_factor)
        except (TypeError, ValueError):
            factor = math.nan
        if year is None or not math.isfinite(factor) or factor <= 0:
            logger.warning(
                "Invalid inflation factor for %s %s: %r", currency, raw_year, raw_factor
            )
            continue
        points[year] = YearPoint(index_value=factor * 100, inflation_factor=factor)

    return MeasureSeries(
        currency=currency,
        measure=measure,
        source=payload.get("source") or "Legacy data",
        last_updated=payload.get("lastUpdated") or datetime.now(UTC).isoformat(),
        points=points,
        earliest_year=_parse_year(payload.get("earliest")) or 1913,
        latest_year=_parse_year(payload.get("latest")) or date.today().year,
        provenance=Provenance.LEGACY,
    )


async def load_measure(store: BlobStore, currency: str, measure: str) -> MeasureSeries:
    """Fetch and parse one measure. Raises ``NotFound`` or ``MalformedData``."""
    key = measure_key(currency, measure)
    try:
        payload = await store.fetch(key)
        return parse_measure_series(payload)
    except (NotFound, MalformedData) as exc:
        exc.currency = exc.currency or currency
        raise


async def load_legacy(store: BlobStore, currency: str, measure: str = "cpi") -> MeasureSeries:
    payload = await store.fetch(legacy_key(currency), timeout=LEGACY_TIMEOUT)
    return parse_legacy_series(currency, payload, measure)
