"""Static tariff table and plan normalization."""

from __future__ import annotations

import json
import math
from collections.abc import Iterator, Mapping
from importlib import resources
from types import MappingProxyType
from typing import IO, Any

from tariff_estimator.errors import TariffError
from tariff_estimator.models import UNBOUNDED, Slab, TariffPlan


class TariffJSONLoader:
    def __init__(
        self,
        filename: str = "tariffs.json",
        package: str = "tariff_estimator.data",
    ) -> None:
        self._filename = filename
        self._package = package
        self._data: dict[str, Any] | None = None

    def _open_resource(self) -> IO[str]:
        try:
            resource = resources.files(self._package).joinpath(self._filename)
            return resource.open("r", encoding="utf-8")
        except ModuleNotFoundError as exc:
            raise FileNotFoundError(f"Tariff package not found: {self._package}") from exc
        except FileNotFoundError as exc:
            raise FileNotFoundError(
                f"Tariff file not found in package: {self._package}/{self._filename}"
            ) from exc

    def load(self) -> dict[str, Any]:
        if self._data is None:
            with self._open_resource() as f:
                self._data = json.load(f)
        return self._data


class StaticTariffTable(Mapping[str, TariffPlan]):
    """Read-only mapping of provider code to its built-in tariff plan."""

    def __init__(self, plans: Mapping[str, TariffPlan]) -> None:
        validated = {}
        for provider, plan in plans.items():
            try:
                validated[_provider_key(provider)] = plan.validate()
            except TariffError as exc:
                raise TariffError(f"Invalid static plan for {provider}: {exc}") from exc
        self._plans = MappingProxyType(validated)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> StaticTariffTable:
        """Build a table from ``{"providers": [{"id": ..., <plan fields>}]}``."""
        plans = {}
        for entry in data.get("providers", []):
            provider = entry.get("id")
            if not provider:
                raise TariffError("Static tariff entry without provider id")
            plans[provider] = plan_from_mapping(entry)
        return cls(plans)

    @classmethod
    def from_package(
        cls,
        filename: str = "tariffs.json",
        package: str = "tariff_estimator.data",
    ) -> StaticTariffTable:
        return cls.from_mapping(TariffJSONLoader(filename, package).load())

    def __getitem__(self, provider: str) -> TariffPlan:
        return self._plans[_provider_key(provider)]

    def __contains__(self, provider: object) -> bool:
        if not isinstance(provider, str):
            return False
        return _provider_key(provider) in self._plans

    def __iter__(self) -> Iterator[str]:
        return iter(self._plans)

    def __len__(self) -> int:
        return len(self._plans)

    @property
    def providers(self) -> tuple[str, ...]:
        return tuple(self._plans)


def plan_from_mapping(data: Mapping[str, Any]) -> TariffPlan:
    """Normalize a camelCase plan payload into a validated TariffPlan.

    Slabs with a non-numeric ``from`` or ``ratePerUnit`` are dropped and the
    rest are sorted by ``from``. A ``to`` of ``null`` marks the open slab.
    Missing peak, off-peak and tax rates default to zero.

    Raises:
        TariffError: if the normalized plan is invalid.
    """
    if not isinstance(data, Mapping):
        raise TariffError("Tariff plan must be an object")

    plan = TariffPlan(
        slabs=_normalize_slabs(data.get("slabs")),
        fixed_charge=_to_float(data.get("fixedCharge")),
        peak_rate=_to_float(data.get("peakRate") or 0),
        off_peak_rate=_to_float(data.get("offPeakRate") or 0),
        tax_rate=_to_float(data.get("taxRate") or 0),
    )
    return plan.validate()


def _normalize_slabs(slabs: Any) -> tuple[Slab, ...]:
    if not isinstance(slabs, list):
        return ()

    normalized = []
    for item in slabs:
        if not isinstance(item, Mapping):
            continue
        start = _to_float(item.get("from"))
        rate = _to_float(item.get("ratePerUnit"))
        if not (math.isfinite(start) and math.isfinite(rate)):
            continue
        end = item.get("to")
        normalized.append(
            Slab(
                from_unit=start,
                to_unit=UNBOUNDED if end is None else _to_float(end),
                rate_per_unit=rate,
            )
        )
    return tuple(sorted(normalized, key=lambda slab: slab.from_unit))


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return math.nan


def _provider_key(provider: Any) -> str:
    return getattr(provider, "value", provider)
