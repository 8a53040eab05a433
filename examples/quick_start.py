"""Quick Start - estimate a household electricity bill.

Set TARIFF_API_URL (and optionally TARIFF_API_KEY) to use the external
pricing service; otherwise the built-in tariff table is used.
"""

from __future__ import annotations

import json

import pandas as pd

import tariff_estimator as te


def main():
    # =============================================================================
    # Example 1: Single estimate
    # =============================================================================

    print("=" * 60)
    print("Example 1: Single Estimate")
    print("=" * 60)

    resolver = te.build_resolver()
    request = te.EstimateRequest(
        units=120, month=2, year=2026, provider="CEB", peak_units=20, off_peak_units=40
    )
    bill = te.estimate_bill(request, resolver)

    print(f"Source: {bill.source.value}")
    print(f"Estimated bill: {bill.estimated_bill:.2f} LKR")
    print(te.breakdown_frame(bill).to_string(index=False))
    print()

    # =============================================================================
    # Example 2: JSON request body, as an HTTP handler would see it
    # =============================================================================

    print("=" * 60)
    print("Example 2: JSON Request")
    print("=" * 60)

    status, body = te.estimate_response(
        {"units": 75, "month": 6, "provider": "LECO", "peakUnits": 10}, resolver
    )
    print(status)
    print(json.dumps(body, indent=2))
    print()

    # =============================================================================
    # Example 3: Batch estimates
    # =============================================================================

    print("=" * 60)
    print("Example 3: Batch Estimates")
    print("=" * 60)

    requests = pd.DataFrame(
        {
            "units": [45, 120, 260],
            "month": [1, 2, 3],
            "year": [2026, 2026, 2026],
            "provider": ["CEB", "CEB", "LECO"],
        }
    )
    print(te.estimate_bills(requests, resolver).to_string())


if __name__ == "__main__":
    main()
