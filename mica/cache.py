"""In-memory, per-currency cache of loaded measures.

One ``MeasureCache`` is created per process and handed to whoever loads
measures. Entries are replaced wholesale and expire after ``CACHE_TTL_SECONDS``.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from mica.models import MeasureSeries

CACHE_TTL_SECONDS = 5 * 60


@dataclass(slots=True)
class CacheEntry:
    currency: str
    measures: dict[str, MeasureSeries]
    timestamp: float
    has_real_data: bool = False
    fallback_used: bool = False
    warnings: list[str] = field(default_factory=list)


class MeasureCache:
    def __init__(
        self,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def is_stale(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.timestamp >= self.ttl

    def get(self, currency: str) -> CacheEntry | None:
        entry = self._entries.get(currency)
        if entry is None or self.is_stale(entry):
            return None
        return entry

    def put(
        self,
        currency: str,
        measures: dict[str, MeasureSeries],
        has_real_data: bool = False,
        fallback_used: bool = False,
        warnings: list[str] | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(
            currency=currency,
            measures=dict(measures),
            timestamp=self.clock(),
            has_real_data=has_real_data,
            fallback_used=fallback_used,
            warnings=list(warnings or []),
        )
        self._entries[currency] = entry
        return entry

    def clear(self) -> int:
        """Drop every entry. Returns count of entries removed."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def status(self) -> list[dict]:
        """Return info about each cached currency, stale ones included."""
        now = self.clock()
        return [
            {
                "currency": e.currency,
                "timestamp": e.timestamp,
                "age": now - e.timestamp,
                "measure_count": len(e.measures),
                "fallback_used": e.fallback_used,
                "stale": self.is_stale(e),
            }
            for e in sorted(self._entries.values(), key=lambda e: e.currency)
        ]
