"""Exception hierarchy for the tariff estimator."""

from __future__ import annotations


class TariffEstimatorError(Exception):
    """Base class for all estimator errors."""


class InvalidEstimateRequest(TariffEstimatorError, ValueError):
    """Raised when a request field is missing or out of range."""


class UnsupportedProviderError(TariffEstimatorError, ValueError):
    """Raised when the provider code has no tariff plan."""


class OverlappingUsageError(TariffEstimatorError, ValueError):
    """Raised when peak and off-peak units exceed the total units."""


class TariffError(TariffEstimatorError):
    """Raised when a tariff plan is malformed."""


class TariffSourceUnavailable(TariffEstimatorError):
    """Raised by a tariff source that cannot produce a usable plan.

    The resolver always recovers from this by falling back to the static table.
    """


# Errors a caller can fix by changing the request.
CLIENT_ERRORS = (InvalidEstimateRequest, UnsupportedProviderError, OverlappingUsageError)
