"""Resolve the tariff plan that applies to a provider and billing period."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tariff_estimator.errors import UnsupportedProviderError
from tariff_estimator.models import PlanSource, TariffPlan
from tariff_estimator.rates import StaticTariffTable
from tariff_estimator.remote import RemoteTariffSource, TariffSource, TariffSourceConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    plan: TariffPlan
    source: PlanSource


class TariffPlanResolver:
    """Pick the external plan when available, otherwise the static one.

    External failures never escape: the static plan is returned and tagged
    ``local_fallback``. Only an unknown provider code is an error.
    """

    def __init__(
        self,
        static_table: StaticTariffTable,
        external: TariffSource | None = None,
    ) -> None:
        self._static_table = static_table
        self._external = external

    @property
    def providers(self) -> tuple[str, ...]:
        return self._static_table.providers

    @property
    def has_external_source(self) -> bool:
        return self._external is not None

    def check_provider(self, provider: str) -> None:
        if provider not in self._static_table:
            raise UnsupportedProviderError(f"Unsupported provider: {provider}")

    def resolve(self, provider: str, month: int, year: int | None = None) -> Resolution:
        self.check_provider(provider)
        static_plan = self._static_table[provider]

        if self._external is None:
            logger.debug("No external tariff source, using static plan for %s", provider)
            return Resolution(static_plan, PlanSource.LOCAL)

        outcome = self._external.try_fetch(provider, month, year)
        if outcome.ok:
            logger.debug("Using external tariff plan for %s %s/%s", provider, month, year)
            return Resolution(outcome.plan, PlanSource.EXTERNAL)

        logger.warning(
            "External tariff source failed for %s %s/%s, using static plan: %s",
            provider,
            month,
            year,
            outcome.reason,
        )
        return Resolution(static_plan, PlanSource.LOCAL_FALLBACK)


def build_resolver(
    config: TariffSourceConfig | None = None,
    static_table: StaticTariffTable | None = None,
) -> TariffPlanResolver:
    """Wire a resolver from configuration.

    Args:
        config: External source settings. Defaults to ``TariffSourceConfig.from_env()``.
        static_table: Built-in plans. Defaults to the packaged table.
    """
    config = config if config is not None else TariffSourceConfig.from_env()
    table = static_table if static_table is not None else StaticTariffTable.from_package()
    external = RemoteTariffSource(config) if config.active else None
    return TariffPlanResolver(table, external)
