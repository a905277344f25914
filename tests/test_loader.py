"""Tests for loading all measures of a currency, with cache and fallback."""

import pytest

from mica import loader
from mica.cache import MeasureCache
from mica.calculator import calculate_consensus_inflation
from mica.errors import DataValidationError, NotFound, NoValidMeasures, UnknownCurrency
from mica.models import MEASURE_WEIGHTS, Provenance, RecoveryResult
from mica.recovery import default_engine
from mica.store import DirectoryBlobStore


class RecordingSleep:
    def __init__(self, on_call=None):
        self.delays = []
        self.on_call = on_call

    async def __call__(self, delay):
        self.delays.append(delay)
        if self.on_call is not None:
            self.on_call()


class FlakyStore:
    """Directory store that is unreachable until ``come_back`` is called."""

    def __init__(self, root):
        self.inner = DirectoryBlobStore(root)
        self.up = False

    def come_back(self):
        self.up = True

    async def fetch(self, key, timeout=None):
        if not self.up:
            raise NotFound(f"{key} not available: HTTP 503", retryable=True)
        return await self.inner.fetch(key, timeout)


class TestLoadAllMeasures:
    @pytest.mark.asyncio
    async def test_partial_failure(self, tmp_path, write_measure):
        write_measure(tmp_path, "USD", "cpi")
        write_measure(tmp_path, "USD", "core_pce")

        result = await loader.load_all_measures(DirectoryBlobStore(tmp_path), "USD")

        assert set(result.measures) == {"cpi", "core_pce"}
        failed = {name for name, _ in result.errors}
        assert failed == set(MEASURE_WEIGHTS["USD"]) - {"cpi", "core_pce"}
        assert all(isinstance(e, NotFound) for _, e in result.errors)

    @pytest.mark.asyncio
    async def test_drops_invalid_series(self, tmp_path, write_measure):
        write_measure(tmp_path, "GBP", "cpi")
        write_measure(tmp_path, "GBP", "cpih", years=range(2020, 2024))

        result = await loader.load_all_measures(DirectoryBlobStore(tmp_path), "GBP")

        assert list(result.measures) == ["cpi"]
        errors = dict(result.errors)
        assert isinstance(errors["cpih"], DataValidationError)

    @pytest.mark.asyncio
    async def test_unknown_currency(self, tmp_path):
        with pytest.raises(UnknownCurrency):
            await loader.load_all_measures(DirectoryBlobStore(tmp_path), "ZZZ")

    @pytest.mark.asyncio
    async def test_no_valid_measures(self, tmp_path):
        with pytest.raises(NoValidMeasures) as info:
            await loader.load_all_measures(DirectoryBlobStore(tmp_path), "CHF")
        assert len(info.value.errors) == len(MEASURE_WEIGHTS["CHF"])
        assert not info.value.retryable

    @pytest.mark.asyncio
    async def test_fetch_measures_keeps_invalid(self, tmp_path, write_measure):
        write_measure(tmp_path, "JPY", "cgpi", years=range(2020, 2023))
        result = await loader.fetch_measures(DirectoryBlobStore(tmp_path), "JPY")
        assert list(result.measures) == ["cgpi"]


class TestLoadWithFallback:
    @pytest.mark.asyncio
    async def test_real_data_is_cached(self, tmp_path, write_measure):
        path = write_measure(tmp_path, "USD", "cpi")
        cache = MeasureCache()
        store = DirectoryBlobStore(tmp_path)

        first = await loader.load_currency_measures_with_fallback("USD", store, cache)
        assert list(first.measures) == ["cpi"]
        assert first.has_real_data
        assert not first.fallback_used

        path.unlink()
        second = await loader.load_currency_measures_with_fallback("USD", store, cache)
        assert list(second.measures) == ["cpi"]
        assert second.has_real_data

    @pytest.mark.asyncio
    async def test_retries_then_uses_legacy(self, tmp_path, write_legacy):
        write_legacy(tmp_path, "CAD", {str(y): 1 + (y - 1990) * 0.02 for y in range(1990, 2024)})
        sleep = RecordingSleep()
        store = DirectoryBlobStore(tmp_path)
        cache = MeasureCache()

        result = await loader.load_currency_measures_with_fallback(
            "CAD", store, cache, engine=default_engine(store, sleep=sleep)
        )

        assert sleep.delays == []
        assert result.fallback_used
        assert not result.has_real_data
        assert list(result.measures) == ["cpi"]
        assert result.measures["cpi"].provenance is Provenance.LEGACY
        assert result.warnings == ["Using simplified CPI data only - multiple measures not available"]

        cached = cache.get("CAD")
        assert cached is not None and cached.fallback_used

    @pytest.mark.asyncio
    async def test_retry_recovers_real_data(self, tmp_path, write_measure):
        write_measure(tmp_path, "AUD", "trimmed_mean_cpi")
        store = FlakyStore(tmp_path)
        sleep = RecordingSleep(on_call=store.come_back)

        result = await loader.load_currency_measures_with_fallback(
            "AUD", store, MeasureCache(), engine=default_engine(store, sleep=sleep)
        )

        assert sleep.delays == [1]
        assert not result.fallback_used
        assert result.has_real_data
        assert list(result.measures) == ["trimmed_mean_cpi"]

    @pytest.mark.asyncio
    async def test_unknown_currency_gets_estimated_data(self, tmp_path):
        store = DirectoryBlobStore(tmp_path)
        sleep = RecordingSleep()

        result = await loader.load_currency_measures_with_fallback(
            "ZZZ", store, MeasureCache(), engine=default_engine(store, sleep=sleep)
        )

        assert sleep.delays == []
        assert result.fallback_used
        assert not result.has_real_data
        series = result.measures["cpi"]
        assert series.provenance is Provenance.ESTIMATED_PATTERN
        assert series.years[0] == 1950
        assert "Using estimated data based on historical patterns" in result.warnings

    @pytest.mark.asyncio
    async def test_all_strategies_failing_returns_empty(self, tmp_path):
        class NothingWorks:
            async def recover(self, error, context):
                return RecoveryResult(False, "all_failed", "All recovery strategies failed", True)

        cache = MeasureCache()
        result = await loader.load_currency_measures_with_fallback(
            "EUR", DirectoryBlobStore(tmp_path), cache, engine=NothingWorks()
        )
        assert result.measures == {}
        assert result.fallback_used
        assert result.warnings == ["All recovery strategies failed"]
        assert cache.get("EUR") is None


class TestRepairOnLoad:
    @pytest.mark.asyncio
    async def test_gappy_series_is_interpolated(self, tmp_path, write_measure):
        years = list(range(2000, 2005)) + list(range(2010, 2014))
        for name in MEASURE_WEIGHTS["USD"]:
            write_measure(tmp_path, "USD", name, years=years)
        store = DirectoryBlobStore(tmp_path)
        sleep = RecordingSleep()

        result = await loader.load_currency_measures_with_fallback(
            "USD", store, MeasureCache(), engine=default_engine(store, sleep=sleep)
        )

        assert sleep.delays == []
        assert set(result.measures) == set(MEASURE_WEIGHTS["USD"])
        cpi = result.measures["cpi"]
        assert cpi.provenance is Provenance.INTERPOLATED
        assert cpi.years == list(range(2000, 2014))
        assert cpi.source.endswith("(with 5 interpolated points)")
        assert result.fallback_used
        assert not result.has_real_data
        assert "cpi: 5 data points were estimated using linear interpolation" in result.warnings

    @pytest.mark.asyncio
    async def test_unrepairable_series_still_dropped(self, tmp_path, write_measure):
        write_measure(tmp_path, "GBP", "cpi")
        write_measure(tmp_path, "GBP", "cpih", years=range(2020, 2024))
        store = DirectoryBlobStore(tmp_path)

        result = await loader.load_all_measures(
            store, "GBP", engine=default_engine(store, sleep=RecordingSleep())
        )

        assert list(result.measures) == ["cpi"]
        assert isinstance(dict(result.errors)["cpih"], DataValidationError)
        assert not result.fallback_used
        assert result.warnings == []


class TestDegradedDataFeedsConsensus:
    @pytest.mark.asyncio
    async def test_eur_legacy_data_is_usable(self, tmp_path, write_legacy):
        write_legacy(tmp_path, "EUR", {str(y): 1 + (y - 1996) * 0.02 for y in range(1996, 2025)})
        store = DirectoryBlobStore(tmp_path)
        sleep = RecordingSleep()

        loaded = await loader.load_currency_measures_with_fallback(
            "EUR", store, MeasureCache(), engine=default_engine(store, sleep=sleep)
        )

        assert sleep.delays == []
        assert list(loaded.measures) == ["hicp"]
        assert loaded.measures["hicp"].provenance is Provenance.LEGACY

        result = calculate_consensus_inflation(loaded.measures, "EUR", 2010, 2020, 100.0)
        assert [m.measure for m in result.measures] == ["hicp"]
        assert result.measures[0].weight == pytest.approx(1.0)
        assert result.adjusted_amount == pytest.approx(100 * 1.48 / 1.28)

    @pytest.mark.asyncio
    async def test_eur_estimated_data_is_usable(self, tmp_path):
        store = DirectoryBlobStore(tmp_path)
        loaded = await loader.load_currency_measures_with_fallback(
            "EUR", store, MeasureCache(), engine=default_engine(store, sleep=RecordingSleep())
        )

        assert list(loaded.measures) == ["hicp"]
        assert loaded.measures["hicp"].provenance is Provenance.ESTIMATED_PATTERN
        result = calculate_consensus_inflation(loaded.measures, "EUR", 2000, 2020, 100.0)
        assert result.adjusted_amount > 100.0
