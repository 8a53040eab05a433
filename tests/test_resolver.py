import json
from unittest.mock import MagicMock, patch

import pytest

from tariff_estimator.billing import estimate_bill
from tariff_estimator.errors import UnsupportedProviderError
from tariff_estimator.models import UNBOUNDED, EstimateRequest, PlanSource, Slab, TariffPlan
from tariff_estimator.rates import StaticTariffTable
from tariff_estimator.remote import (
    FetchOutcome,
    RemoteTariffSource,
    TariffSourceConfig,
)
from tariff_estimator.resolver import TariffPlanResolver, build_resolver

EXTERNAL_PLAN = {
    "slabs": [
        {"from": 1, "to": 50, "ratePerUnit": 10},
        {"from": 51, "to": None, "ratePerUnit": 15},
    ],
    "fixedCharge": 300,
    "peakRate": 30,
    "offPeakRate": 20,
    "taxRate": 0.1,
}


class StubSource:
    def __init__(self, outcome: FetchOutcome) -> None:
        self.outcome = outcome
        self.calls: list[tuple] = []

    def try_fetch(self, provider, month, year):
        self.calls.append((provider, month, year))
        return self.outcome


def _response(payload) -> MagicMock:
    response = MagicMock()
    response.read.return_value = json.dumps(payload).encode("utf-8")
    response.__enter__.return_value = response
    return response


@pytest.fixture
def table() -> StaticTariffTable:
    return StaticTariffTable.from_package()


@pytest.fixture
def online_config() -> TariffSourceConfig:
    return TariffSourceConfig(base_url="https://tariffs.example.com/api/", api_key="secret")


def test_local_when_no_external_source(table) -> None:
    resolution = TariffPlanResolver(table).resolve("CEB", 2, 2026)
    assert resolution.source is PlanSource.LOCAL
    assert resolution.plan == table["CEB"]


def test_unsupported_provider_fails_before_io(table) -> None:
    source = StubSource(FetchOutcome.failure("unused"))
    resolver = TariffPlanResolver(table, source)

    with pytest.raises(UnsupportedProviderError, match="XYZ"):
        resolver.resolve("XYZ", 2, 2026)
    with pytest.raises(UnsupportedProviderError):
        TariffPlanResolver(table).resolve("XYZ", 2, 2026)
    assert source.calls == []


def test_external_success(table) -> None:
    plan = TariffPlan(slabs=(Slab(1, UNBOUNDED, 1.0),), fixed_charge=0.0)
    source = StubSource(FetchOutcome.success(plan))
    resolution = TariffPlanResolver(table, source).resolve("LECO", 7, 2025)

    assert resolution.source is PlanSource.EXTERNAL
    assert resolution.plan is plan
    assert source.calls == [("LECO", 7, 2025)]


def test_external_failure_falls_back(table, caplog) -> None:
    source = StubSource(FetchOutcome.failure("timed out"))
    with caplog.at_level("WARNING", logger="tariff_estimator.resolver"):
        resolution = TariffPlanResolver(table, source).resolve("CEB", 2, 2026)

    assert resolution.source is PlanSource.LOCAL_FALLBACK
    assert resolution.plan == table["CEB"]
    assert "timed out" in caplog.text


def test_fallback_estimate_matches_local(table, online_config) -> None:
    request = EstimateRequest(
        units=120, month=2, year=2026, provider="CEB", peak_units=20, off_peak_units=40
    )
    local = estimate_bill(request, TariffPlanResolver(table))

    remote = RemoteTariffSource(online_config)
    with patch("tariff_estimator.remote.urlopen", side_effect=TimeoutError("timed out")):
        fallback = estimate_bill(request, TariffPlanResolver(table, remote))

    assert fallback.source is PlanSource.LOCAL_FALLBACK
    assert local.source is PlanSource.LOCAL
    assert fallback.summary == local.summary
    assert fallback.breakdown == local.breakdown
    assert fallback.estimated_bill == local.estimated_bill == 4578.4


def test_external_plan_used_for_estimate(table, online_config) -> None:
    request = EstimateRequest(units=60, month=2, year=2026, provider="CEB")
    remote = RemoteTariffSource(online_config)
    with patch(
        "tariff_estimator.remote.urlopen", return_value=_response(EXTERNAL_PLAN)
    ):
        estimate = estimate_bill(request, TariffPlanResolver(table, remote))

    assert estimate.source is PlanSource.EXTERNAL
    # 50 @ 10 + 10 @ 15 + 300 fixed, 10% tax
    assert estimate.summary.energy_charge == 650
    assert estimate.summary.sub_total == 950
    assert estimate.estimated_bill == 1045


def test_invalid_external_plan_falls_back(table, online_config) -> None:
    remote = RemoteTariffSource(online_config)
    with patch(
        "tariff_estimator.remote.urlopen",
        return_value=_response({"slabs": [], "fixedCharge": 100}),
    ):
        resolution = TariffPlanResolver(table, remote).resolve("CEB", 2, 2026)

    assert resolution.source is PlanSource.LOCAL_FALLBACK


def test_build_resolver_respects_config(table, online_config) -> None:
    assert not build_resolver(TariffSourceConfig(), table).has_external_source
    assert build_resolver(online_config, table).has_external_source
    disabled = TariffSourceConfig(base_url="https://x.example.com", enabled=False)
    assert not build_resolver(disabled, table).has_external_source


def test_injected_static_table() -> None:
    custom = StaticTariffTable.from_mapping(
        {
            "providers": [
                {
                    "id": "TEST",
                    "slabs": [{"from": 1, "to": None, "ratePerUnit": 2}],
                    "fixedCharge": 10,
                }
            ]
        }
    )
    resolver = TariffPlanResolver(custom)

    assert resolver.providers == ("TEST",)
    assert resolver.resolve("TEST", 1).plan.fixed_charge == 10
    with pytest.raises(UnsupportedProviderError):
        resolver.resolve("CEB", 1)
