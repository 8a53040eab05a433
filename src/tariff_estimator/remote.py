"""Client for the external tariff pricing service."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from http.client import HTTPException
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from tariff_estimator.errors import TariffError, TariffSourceUnavailable
from tariff_estimator.models import TariffPlan
from tariff_estimator.rates import plan_from_mapping

DEFAULT_TIMEOUT = 5.0

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class TariffSourceConfig:
    """Connection settings for the external pricing service."""

    base_url: str | None = None
    api_key: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    enabled: bool = True

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.base_url)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TariffSourceConfig:
        """Read ``TARIFF_API_*`` variables from the environment.

        ``TARIFF_API_URL`` turns the external source on,
        ``TARIFF_API_ENABLED=false`` turns it off again.
        """
        env = os.environ if environ is None else environ
        timeout_text = env.get("TARIFF_API_TIMEOUT")
        try:
            timeout = float(timeout_text) if timeout_text else DEFAULT_TIMEOUT
        except ValueError as exc:
            raise ValueError(f"Invalid TARIFF_API_TIMEOUT: {timeout_text!r}") from exc
        return cls(
            base_url=env.get("TARIFF_API_URL") or None,
            api_key=env.get("TARIFF_API_KEY") or None,
            timeout=timeout,
            enabled=env.get("TARIFF_API_ENABLED", "true").strip().lower()
            not in _FALSE_VALUES,
        )


@dataclass(frozen=True)
class FetchOutcome:
    """Result of asking a tariff source for a plan.

    Exactly one of ``plan`` and ``reason`` is set.
    """

    plan: TariffPlan | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.plan is not None

    @classmethod
    def success(cls, plan: TariffPlan) -> FetchOutcome:
        return cls(plan=plan)

    @classmethod
    def failure(cls, reason: str) -> FetchOutcome:
        return cls(reason=reason)


class TariffSource(Protocol):
    def try_fetch(self, provider: str, month: int, year: int | None) -> FetchOutcome: ...


class RemoteTariffSource:
    """Fetch tariff plans over HTTP with a bounded timeout."""

    def __init__(self, config: TariffSourceConfig) -> None:
        if not config.base_url:
            raise ValueError("Tariff API not configured")
        self._config = config

    @property
    def endpoint(self) -> str:
        return f"{self._config.base_url.rstrip('/')}/tariffs"

    def _build_request(self, provider: str, month: int, year: int | None) -> Request:
        params: dict[str, Any] = {"provider": provider, "month": month}
        if year is not None:
            params["year"] = year
        headers = {"Accept": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return Request(f"{self.endpoint}?{urlencode(params)}", headers=headers)

    def fetch(self, provider: str, month: int, year: int | None) -> TariffPlan:
        """Fetch and validate the plan for a billing period.

        Raises:
            TariffSourceUnavailable: on any network, HTTP, decoding or
                validation failure.
        """
        request = self._build_request(provider, month, year)
        try:
            with urlopen(request, timeout=self._config.timeout) as response:
                data = json.loads(response.read().decode("utf-8"))
        except HTTPError as exc:
            raise TariffSourceUnavailable(
                f"Tariff API returned HTTP {exc.code}"
            ) from exc
        except (URLError, HTTPException, TimeoutError, OSError) as exc:
            raise TariffSourceUnavailable(f"Tariff API unreachable: {exc}") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TariffSourceUnavailable("Tariff API returned invalid JSON") from exc

        try:
            return plan_from_mapping(data or {})
        except TariffError as exc:
            raise TariffSourceUnavailable(f"Invalid tariff data from API: {exc}") from exc

    def try_fetch(self, provider: str, month: int, year: int | None) -> FetchOutcome:
        try:
            return FetchOutcome.success(self.fetch(provider, month, year))
        except TariffSourceUnavailable as exc:
            return FetchOutcome.failure(str(exc))
