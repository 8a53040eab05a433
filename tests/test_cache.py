from unittest.mock import patch

import pytest

from tariff_estimator.cache import CachedTariffResolver
from tariff_estimator.errors import UnsupportedProviderError
from tariff_estimator.models import UNBOUNDED, PlanSource, Slab, TariffPlan
from tariff_estimator.rates import StaticTariffTable
from tariff_estimator.remote import FetchOutcome
from tariff_estimator.resolver import TariffPlanResolver

REMOTE_PLAN = TariffPlan(
    slabs=(Slab(1, 100, 5.0), Slab(101, UNBOUNDED, 7.0)),
    fixed_charge=150.0,
    peak_rate=10.0,
    off_peak_rate=4.0,
    tax_rate=0.08,
)


class CountingSource:
    def __init__(self, outcome: FetchOutcome) -> None:
        self.outcome = outcome
        self.calls = 0

    def try_fetch(self, provider, month, year):
        self.calls += 1
        return self.outcome


@pytest.fixture
def table() -> StaticTariffTable:
    return StaticTariffTable.from_package()


def test_external_plan_cached_in_memory_and_on_disk(table, tmp_path) -> None:
    source = CountingSource(FetchOutcome.success(REMOTE_PLAN))
    cached = CachedTariffResolver(TariffPlanResolver(table, source), cache_dir=tmp_path)

    first = cached.resolve("CEB", 3, 2026)
    second = cached.resolve("CEB", 3, 2026)

    assert first.source is second.source is PlanSource.EXTERNAL
    assert second.plan == REMOTE_PLAN
    assert source.calls == 1
    assert (tmp_path / "plans" / "CEB-2026-03.json").exists()

    # a fresh decorator reads the file written by the first one
    failing = CountingSource(FetchOutcome.failure("down"))
    reloaded = CachedTariffResolver(TariffPlanResolver(table, failing), cache_dir=tmp_path)
    resolution = reloaded.resolve("CEB", 3, 2026)
    assert resolution.source is PlanSource.EXTERNAL
    assert resolution.plan == REMOTE_PLAN
    assert failing.calls == 0


def test_fallback_not_cached(table, tmp_path) -> None:
    source = CountingSource(FetchOutcome.failure("down"))
    cached = CachedTariffResolver(TariffPlanResolver(table, source), cache_dir=tmp_path)

    assert cached.resolve("LECO", 1, 2026).source is PlanSource.LOCAL_FALLBACK
    assert cached.resolve("LECO", 1, 2026).source is PlanSource.LOCAL_FALLBACK
    assert source.calls == 2
    assert list((tmp_path / "plans").iterdir()) == []


def test_requests_without_year_bypass_cache(table, tmp_path) -> None:
    source = CountingSource(FetchOutcome.success(REMOTE_PLAN))
    cached = CachedTariffResolver(TariffPlanResolver(table, source), cache_dir=tmp_path)

    cached.resolve("CEB", 3)
    cached.resolve("CEB", 3)
    assert source.calls == 2


def test_corrupt_cache_file_ignored(table, tmp_path) -> None:
    cache_file = tmp_path / "plans" / "CEB-2026-04.json"
    cache_file.parent.mkdir(parents=True)
    cache_file.write_text("{not json", encoding="utf-8")

    source = CountingSource(FetchOutcome.success(REMOTE_PLAN))
    cached = CachedTariffResolver(TariffPlanResolver(table, source), cache_dir=tmp_path)

    assert cached.resolve("CEB", 4, 2026).plan == REMOTE_PLAN
    assert source.calls == 1


def test_unsupported_provider_checked_before_cache(table, tmp_path) -> None:
    source = CountingSource(FetchOutcome.success(REMOTE_PLAN))
    cached = CachedTariffResolver(TariffPlanResolver(table, source), cache_dir=tmp_path)

    with pytest.raises(UnsupportedProviderError):
        cached.resolve("XYZ", 1, 2026)
    assert source.calls == 0


def test_unwritable_cache_dir_keeps_memory_layer(table, tmp_path) -> None:
    source = CountingSource(FetchOutcome.success(REMOTE_PLAN))
    with patch("pathlib.Path.mkdir", side_effect=PermissionError("read-only")):
        cached = CachedTariffResolver(
            TariffPlanResolver(table, source), cache_dir=tmp_path
        )

    assert cached.cache_dir is None
    assert cached.resolve("CEB", 5, 2026).plan == REMOTE_PLAN
    assert cached.resolve("CEB", 5, 2026).source is PlanSource.EXTERNAL
    assert source.calls == 1
    assert not (tmp_path / "plans").exists()
