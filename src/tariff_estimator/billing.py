"""Bill calculation from a resolved tariff plan."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

import pandas as pd

from tariff_estimator.errors import CLIENT_ERRORS, OverlappingUsageError, TariffError
from tariff_estimator.models import (
    BillEstimate,
    BillSummary,
    EstimateRequest,
    LineItem,
    LineItemKind,
    PlanSource,
    Slab,
    TariffPlan,
)
from tariff_estimator.resolver import Resolution

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = [
    "month",
    "year",
    "provider",
    "source",
    "units",
    "energy_charge",
    "peak_charge",
    "off_peak_charge",
    "fixed_charge",
    "tax",
    "sub_total",
    "estimated_bill",
]

BREAKDOWN_COLUMNS = ["kind", "label", "units", "rate_per_unit", "amount"]


class PlanResolver(Protocol):
    def resolve(self, provider: str, month: int, year: int | None = None) -> Resolution: ...


@dataclass(frozen=True)
class _SlabUsage:
    slab: Slab
    units: float
    amount: float


def calculate(
    request: EstimateRequest,
    plan: TariffPlan,
    source: PlanSource = PlanSource.LOCAL,
) -> BillEstimate:
    """Compute an itemized bill for ``request`` under ``plan``.

    Peak and off-peak charges are added on top of the slab energy charge;
    the time-of-use units are not removed from the slab allocation.
    Amounts are rounded to two decimals only when emitted.

    Raises:
        OverlappingUsageError: if peak and off-peak units exceed total units.
        TariffError: if the plan slabs cannot absorb all units.
    """
    if request.peak_units + request.off_peak_units > request.units:
        raise OverlappingUsageError("peak and off-peak units cannot exceed total units")

    slab_usage = _allocate_slabs(request.units, plan.slabs)
    energy_charge = sum(usage.amount for usage in slab_usage)
    peak_charge = request.peak_units * plan.peak_rate
    off_peak_charge = request.off_peak_units * plan.off_peak_rate
    sub_total = energy_charge + peak_charge + off_peak_charge + plan.fixed_charge
    tax = sub_total * plan.tax_rate
    estimated_bill = sub_total + tax

    breakdown = [
        LineItem(
            kind=LineItemKind.SLAB,
            label=usage.slab.label,
            units=usage.units,
            rate_per_unit=usage.slab.rate_per_unit,
            amount=_round_amount(usage.amount),
        )
        for usage in slab_usage
    ]
    breakdown.extend(
        [
            LineItem(
                kind=LineItemKind.TOU,
                label="peak",
                units=request.peak_units,
                rate_per_unit=plan.peak_rate,
                amount=_round_amount(peak_charge),
            ),
            LineItem(
                kind=LineItemKind.TOU,
                label="offPeak",
                units=request.off_peak_units,
                rate_per_unit=plan.off_peak_rate,
                amount=_round_amount(off_peak_charge),
            ),
            LineItem(
                kind=LineItemKind.FIXED,
                label="fixedCharge",
                amount=_round_amount(plan.fixed_charge),
            ),
            LineItem(
                kind=LineItemKind.TAX,
                label="tax",
                rate_per_unit=plan.tax_rate,
                amount=_round_amount(tax),
            ),
        ]
    )

    summary = BillSummary(
        energy_charge=_round_amount(energy_charge),
        peak_charge=_round_amount(peak_charge),
        off_peak_charge=_round_amount(off_peak_charge),
        fixed_charge=_round_amount(plan.fixed_charge),
        tax=_round_amount(tax),
        sub_total=_round_amount(sub_total),
    )
    return BillEstimate(
        month=request.month,
        year=request.year,
        provider=request.provider,
        source=PlanSource(source),
        units=request.units,
        estimated_bill=_round_amount(estimated_bill),
        summary=summary,
        breakdown=tuple(breakdown),
    )


def estimate_bill(request: EstimateRequest, resolver: PlanResolver) -> BillEstimate:
    """Resolve the plan for ``request`` and calculate its bill."""
    resolution = resolver.resolve(request.provider, request.month, request.year)
    return calculate(request, resolution.plan, resolution.source)


def estimate_response(
    payload: Any, resolver: PlanResolver
) -> tuple[int, dict[str, Any]]:
    """Turn a JSON request body into an HTTP status and JSON body.

    Client mistakes map to 400, anything else to 500. A breakdown is only
    returned when the whole estimate succeeded.
    """
    try:
        request = EstimateRequest.from_dict(payload)
        estimate = estimate_bill(request, resolver)
    except CLIENT_ERRORS as exc:
        return 400, {"message": str(exc)}
    except Exception as exc:
        logger.exception("Bill estimation failed")
        return 500, {"message": str(exc)}
    return 200, estimate.to_dict()


def estimate_bills(frame: pd.DataFrame, resolver: PlanResolver) -> pd.DataFrame:
    """Estimate one bill per row of ``frame``.

    Required columns are ``units``, ``month`` and ``provider``; ``year``,
    ``peak_units`` and ``off_peak_units`` are optional. The result keeps the
    input index and has one column per summary amount.
    """
    missing = {"units", "month", "provider"} - set(frame.columns)
    if missing:
        raise KeyError(f"Missing columns: {sorted(missing)}")

    records = []
    for row in frame.itertuples(index=False):
        values = row._asdict()
        request = EstimateRequest(
            units=float(values["units"]),
            month=int(values["month"]),
            provider=str(values["provider"]),
            year=_optional_int(values.get("year")),
            peak_units=_optional_float(values.get("peak_units")),
            off_peak_units=_optional_float(values.get("off_peak_units")),
        )
        records.append(_summary_record(estimate_bill(request, resolver)))

    return pd.DataFrame(records, index=frame.index, columns=SUMMARY_COLUMNS)


def breakdown_frame(estimate: BillEstimate) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "kind": item.kind.value,
                "label": item.label,
                "units": item.units,
                "rate_per_unit": item.rate_per_unit,
                "amount": item.amount,
            }
            for item in estimate.breakdown
        ],
        columns=BREAKDOWN_COLUMNS,
    )


def _allocate_slabs(units: float, slabs: tuple[Slab, ...]) -> list[_SlabUsage]:
    remaining_units = units
    allocations = []
    for slab in slabs:
        if remaining_units <= 0:
            break
        used = min(remaining_units, slab.capacity)
        allocations.append(_SlabUsage(slab, used, used * slab.rate_per_unit))
        remaining_units -= used
    if remaining_units > 0:
        raise TariffError(f"Tariff slabs exhausted with {remaining_units} units left")
    return allocations


def _summary_record(estimate: BillEstimate) -> dict[str, Any]:
    summary = estimate.summary
    return {
        "month": estimate.month,
        "year": estimate.year,
        "provider": estimate.provider,
        "source": estimate.source.value,
        "units": estimate.units,
        "energy_charge": summary.energy_charge,
        "peak_charge": summary.peak_charge,
        "off_peak_charge": summary.off_peak_charge,
        "fixed_charge": summary.fixed_charge,
        "tax": summary.tax,
        "sub_total": summary.sub_total,
        "estimated_bill": estimate.estimated_bill,
    }


def _round_amount(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _optional_int(value: Any) -> int | None:
    if value is None or pd.isna(value):
        return None
    return int(value)


def _optional_float(value: Any) -> float:
    if value is None or pd.isna(value):
        return 0.0
    return float(value)
