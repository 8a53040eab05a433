"""Public package entry point for the tariff bill estimator."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from tariff_estimator.billing import (
    breakdown_frame,
    calculate,
    estimate_bill,
    estimate_bills,
    estimate_response,
)
from tariff_estimator.cache import CachedTariffResolver
from tariff_estimator.errors import (
    InvalidEstimateRequest,
    OverlappingUsageError,
    TariffError,
    TariffEstimatorError,
    TariffSourceUnavailable,
    UnsupportedProviderError,
)
from tariff_estimator.models import (
    UNBOUNDED,
    BillEstimate,
    BillSummary,
    EstimateRequest,
    LineItem,
    LineItemKind,
    PlanSource,
    Provider,
    Slab,
    TariffPlan,
)
from tariff_estimator.rates import StaticTariffTable, plan_from_mapping
from tariff_estimator.remote import (
    FetchOutcome,
    RemoteTariffSource,
    TariffSource,
    TariffSourceConfig,
)
from tariff_estimator.resolver import Resolution, TariffPlanResolver, build_resolver

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())


def static_tariffs() -> StaticTariffTable:
    """Return the packaged per-provider tariff table."""
    return StaticTariffTable.from_package()


def available_providers() -> tuple[str, ...]:
    return static_tariffs().providers


def plan_details(provider: str) -> dict[str, Any]:
    """Describe the built-in plan for ``provider``."""
    table = static_tariffs()
    if provider not in table:
        raise UnsupportedProviderError(f"Unsupported provider: {provider}")
    return table[provider].describe()


def make_resolver(
    config: TariffSourceConfig | None = None,
    cache_dir: Path | None = None,
    use_cache: bool = False,
) -> TariffPlanResolver | CachedTariffResolver:
    """Build a resolver, optionally wrapped in the on-disk plan cache."""
    base = build_resolver(config)
    if use_cache:
        return CachedTariffResolver(base, cache_dir=cache_dir)
    return base


def estimate(
    units: float,
    month: int,
    provider: str,
    year: int | None = None,
    peak_units: float = 0.0,
    off_peak_units: float = 0.0,
    config: TariffSourceConfig | None = None,
) -> BillEstimate:
    """Estimate a bill in one call.

    Example:
        >>> bill = estimate(120, 2, "CEB", peak_units=20, off_peak_units=40,
        ...                 config=TariffSourceConfig())
        >>> bill.estimated_bill
        4578.4
    """
    request = EstimateRequest(
        units=units,
        month=month,
        provider=provider,
        year=year,
        peak_units=peak_units,
        off_peak_units=off_peak_units,
    )
    return estimate_bill(request, build_resolver(config))


__all__ = [
    "BillEstimate",
    "BillSummary",
    "CachedTariffResolver",
    "EstimateRequest",
    "FetchOutcome",
    "InvalidEstimateRequest",
    "LineItem",
    "LineItemKind",
    "OverlappingUsageError",
    "PlanSource",
    "Provider",
    "RemoteTariffSource",
    "Resolution",
    "Slab",
    "StaticTariffTable",
    "TariffError",
    "TariffEstimatorError",
    "TariffPlan",
    "TariffPlanResolver",
    "TariffSource",
    "TariffSourceConfig",
    "TariffSourceUnavailable",
    "UNBOUNDED",
    "UnsupportedProviderError",
    "available_providers",
    "breakdown_frame",
    "build_resolver",
    "calculate",
    "estimate",
    "estimate_bill",
    "estimate_bills",
    "estimate_response",
    "plan_details",
    "plan_from_mapping",
    "make_resolver",
    "static_tariffs",
    "__version__",
]
