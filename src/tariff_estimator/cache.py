"""Disk-backed cache of external tariff plans, layered around a resolver."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from platformdirs import user_cache_path

from tariff_estimator.errors import TariffError
from tariff_estimator.models import PlanSource, TariffPlan
from tariff_estimator.rates import plan_from_mapping
from tariff_estimator.resolver import Resolution, TariffPlanResolver

logger = logging.getLogger(__name__)

PeriodKey = tuple[str, int, int]


class CachedTariffResolver:
    """Remember external plans per provider and billing period.

    Only ``external`` resolutions for a concrete year are stored, so a
    fallback never hides a later successful fetch. Plans live in memory and
    as ``<provider>-<year>-<month>.json`` under ``cache_dir/plans``; when that
    directory cannot be created the cache keeps working in memory only.
    """

    def __init__(self, resolver: TariffPlanResolver, cache_dir: Path | None = None) -> None:
        root = Path(cache_dir) if cache_dir else user_cache_path("tariff_estimator")
        self._resolver = resolver
        self._plans: dict[PeriodKey, TariffPlan] = {}
        self._plan_dir: Path | None = root / "plans"
        try:
            self._plan_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Tariff cache directory %s unusable: %s", self._plan_dir, exc)
            self._plan_dir = None

    @property
    def cache_dir(self) -> Path | None:
        return self._plan_dir

    @property
    def providers(self) -> tuple[str, ...]:
        return self._resolver.providers

    def resolve(self, provider: str, month: int, year: int | None = None) -> Resolution:
        self._resolver.check_provider(provider)
        if year is None:
            return self._resolver.resolve(provider, month, year)

        key = (getattr(provider, "value", provider), int(year), int(month))
        plan = self._plans.get(key) or self._read(key)
        if plan is not None:
            logger.debug("Tariff cache hit for %s %s/%s", *key)
            self._plans[key] = plan
            return Resolution(plan, PlanSource.EXTERNAL)

        resolution = self._resolver.resolve(provider, month, year)
        if resolution.source is PlanSource.EXTERNAL:
            self._plans[key] = resolution.plan
            self._write(key, resolution.plan)
        return resolution

    def _file_for(self, key: PeriodKey) -> Path | None:
        if self._plan_dir is None:
            return None
        provider, year, month = key
        return self._plan_dir / f"{provider}-{year}-{month:02d}.json"

    def _read(self, key: PeriodKey) -> TariffPlan | None:
        path = self._file_for(key)
        if path is None or not path.is_file():
            return None
        try:
            return plan_from_mapping(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, TariffError) as exc:
            logger.debug("Ignoring unreadable tariff cache entry %s: %s", path.name, exc)
            return None

    def _write(self, key: PeriodKey, plan: TariffPlan) -> None:
        path = self._file_for(key)
        if path is None:
            return
        try:
            path.write_text(json.dumps(plan.describe(), indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write tariff cache entry %s: %s", path.name, exc)
