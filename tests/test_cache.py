"""Tests for the in-memory measure cache."""

from __future__ import annotations

from mica.cache import CACHE_TTL_SECONDS, MeasureCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestMeasureCache:
    def test_put_and_get(self, make_series) -> None:  # type: ignore[no-untyped-def]
        cache = MeasureCache(clock=FakeClock())
        cache.put("USD", {"cpi": make_series()}, has_real_data=True)

        entry = cache.get("USD")
        assert entry is not None
        assert entry.currency == "USD"
        assert list(entry.measures) == ["cpi"]
        assert entry.has_real_data
        assert not entry.fallback_used

    def test_missing(self) -> None:
        assert MeasureCache().get("GBP") is None

    def test_expires_after_ttl(self, make_series) -> None:  # type: ignore[no-untyped-def]
        clock = FakeClock()
        cache = MeasureCache(clock=clock)
        cache.put("USD", {"cpi": make_series()})

        clock.now += CACHE_TTL_SECONDS - 1
        assert cache.get("USD") is not None

        clock.now += 1
        assert cache.get("USD") is None

    def test_put_replaces_wholesale(self, make_series) -> None:  # type: ignore[no-untyped-def]
        cache = MeasureCache(clock=FakeClock())
        cache.put("USD", {"cpi": make_series(), "pce": make_series(measure="pce")})
        cache.put("USD", {"core_cpi": make_series(measure="core_cpi")}, fallback_used=True)

        entry = cache.get("USD")
        assert entry is not None
        assert list(entry.measures) == ["core_cpi"]
        assert entry.fallback_used

    def test_status_and_clear(self, make_series) -> None:  # type: ignore[no-untyped-def]
        clock = FakeClock()
        cache = MeasureCache(ttl=60, clock=clock)
        cache.put("USD", {"cpi": make_series()})
        clock.now += 90
        cache.put("EUR", {"hicp": make_series(currency="EUR", measure="hicp")})

        status = cache.status()
        assert [s["currency"] for s in status] == ["EUR", "USD"]
        assert status[1]["age"] == 90
        assert status[1]["stale"]
        assert not status[0]["stale"]
        assert status[0]["measure_count"] == 1

        assert cache.clear() == 2
        assert cache.status() == []
