"""Shared data structures for the tariff estimator."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from tariff_estimator.errors import InvalidEstimateRequest, TariffError


class Provider(str, Enum):
    CEB = "CEB"
    LECO = "LECO"


class PlanSource(str, Enum):
    EXTERNAL = "external"
    LOCAL = "local"
    LOCAL_FALLBACK = "local_fallback"


class LineItemKind(str, Enum):
    SLAB = "slab"
    TOU = "tou"
    FIXED = "fixed"
    TAX = "tax"


class Bound(Enum):
    """Open upper bound of the last slab. Serialized as ``null``."""

    UNBOUNDED = "unbounded"

    def __repr__(self) -> str:
        return "UNBOUNDED"


UNBOUNDED = Bound.UNBOUNDED


@dataclass(frozen=True)
class Slab:
    from_unit: float
    to_unit: float | Bound
    rate_per_unit: float

    @property
    def is_open(self) -> bool:
        return self.to_unit is UNBOUNDED

    @property
    def capacity(self) -> float:
        if self.is_open:
            return math.inf
        return self.to_unit - self.from_unit + 1

    @property
    def label(self) -> str:
        if self.is_open:
            return f"{_format_number(self.from_unit)}+"
        return f"{_format_number(self.from_unit)}-{_format_number(self.to_unit)}"


@dataclass(frozen=True)
class TariffPlan:
    slabs: tuple[Slab, ...]
    fixed_charge: float
    peak_rate: float = 0.0
    off_peak_rate: float = 0.0
    tax_rate: float = 0.0

    def validate(self) -> TariffPlan:
        """Check the plan shape and slab invariants, returning the plan.

        Raises:
            TariffError: if any invariant does not hold.
        """
        if not self.slabs:
            raise TariffError("Tariff plan has no slabs")

        amounts = np.array(
            [self.fixed_charge, self.peak_rate, self.off_peak_rate, self.tax_rate]
            + [slab.rate_per_unit for slab in self.slabs]
            + [slab.from_unit for slab in self.slabs],
            dtype=float,
        )
        if not np.isfinite(amounts).all():
            raise TariffError("Tariff plan contains non-finite values")
        if (amounts < 0).any():
            raise TariffError("Tariff plan contains negative values")
        if self.tax_rate >= 1:
            raise TariffError(f"Tax rate must be below 1: {self.tax_rate}")

        expected_from = 1.0
        for index, slab in enumerate(self.slabs):
            if slab.from_unit != expected_from:
                raise TariffError(
                    f"Slab {index} starts at {slab.from_unit}, expected {expected_from}"
                )
            last = index == len(self.slabs) - 1
            if slab.is_open:
                if not last:
                    raise TariffError("Only the last slab may be unbounded")
                break
            if not math.isfinite(slab.to_unit) or slab.to_unit < slab.from_unit:
                raise TariffError(f"Invalid slab bounds: {slab.label}")
            if last:
                raise TariffError("The last slab must be unbounded")
            expected_from = slab.to_unit + 1
        return self

    def describe(self) -> dict[str, Any]:
        return {
            "slabs": [
                {
                    "from": slab.from_unit,
                    "to": None if slab.is_open else slab.to_unit,
                    "ratePerUnit": slab.rate_per_unit,
                }
                for slab in self.slabs
            ],
            "fixedCharge": self.fixed_charge,
            "peakRate": self.peak_rate,
            "offPeakRate": self.off_peak_rate,
            "taxRate": self.tax_rate,
        }


_REQUEST_FIELDS = {
    "units": "units",
    "month": "month",
    "year": "year",
    "provider": "provider",
    "peakUnits": "peak_units",
    "offPeakUnits": "off_peak_units",
}


@dataclass(frozen=True)
class EstimateRequest:
    units: float
    month: int
    provider: str
    year: int | None = None
    peak_units: float = 0.0
    off_peak_units: float = 0.0

    def __post_init__(self) -> None:
        for name in ("units", "peak_units", "off_peak_units"):
            value = getattr(self, name)
            if not _is_number(value) or not _is_finite(value):
                raise InvalidEstimateRequest(f"{name} must be a number")
            if value < 0:
                raise InvalidEstimateRequest(f"{name} must be greater than or equal to 0")
        if not _is_integer(self.month) or not 1 <= self.month <= 12:
            raise InvalidEstimateRequest("month must be an integer between 1 and 12")
        if self.year is not None and (not _is_integer(self.year) or self.year < 1900):
            raise InvalidEstimateRequest(
                "year must be an integer greater than or equal to 1900"
            )
        if not isinstance(self.provider, str) or not self.provider:
            raise InvalidEstimateRequest("provider is required")
        object.__setattr__(self, "month", int(self.month))
        if self.year is not None:
            object.__setattr__(self, "year", int(self.year))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> EstimateRequest:
        """Build a request from a camelCase JSON body."""
        if not isinstance(payload, Mapping):
            raise InvalidEstimateRequest("request body must be an object")
        unknown = sorted(set(payload) - set(_REQUEST_FIELDS))
        if unknown:
            raise InvalidEstimateRequest(f"{unknown[0]} is not allowed")
        for required in ("units", "month", "provider"):
            if payload.get(required) is None:
                raise InvalidEstimateRequest(f"{required} is required")

        values = {
            _REQUEST_FIELDS[key]: value
            for key, value in payload.items()
            if value is not None
        }
        return cls(**values)


@dataclass(frozen=True)
class LineItem:
    kind: LineItemKind
    label: str
    amount: float
    units: float | None = None
    rate_per_unit: float | None = None

    def to_dict(self) -> dict[str, Any]:
        item: dict[str, Any] = {"type": self.kind.value, "label": self.label}
        if self.units is not None:
            item["units"] = self.units
        if self.rate_per_unit is not None:
            item["ratePerUnit"] = self.rate_per_unit
        item["amount"] = self.amount
        return item


@dataclass(frozen=True)
class BillSummary:
    energy_charge: float
    peak_charge: float
    off_peak_charge: float
    fixed_charge: float
    tax: float
    sub_total: float

    def to_dict(self) -> dict[str, float]:
        return {
            "energyCharge": self.energy_charge,
            "peakCharge": self.peak_charge,
            "offPeakCharge": self.off_peak_charge,
            "fixedCharge": self.fixed_charge,
            "tax": self.tax,
            "subTotal": self.sub_total,
        }


@dataclass(frozen=True)
class BillEstimate:
    month: int
    year: int | None
    provider: str
    source: PlanSource
    units: float
    estimated_bill: float
    summary: BillSummary
    breakdown: tuple[LineItem, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "year": self.year,
            "provider": _label_value(self.provider),
            "source": self.source.value,
            "units": self.units,
            "estimatedBill": self.estimated_bill,
            "summary": self.summary.to_dict(),
            "breakdown": [item.to_dict() for item in self.breakdown],
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite(value: float) -> bool:
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _label_value(value: Any) -> str:
    if isinstance(value, Enum):
        return value.value
    return str(value)
