from __future__ import annotations

import logging
import math
from typing import Any, Protocol

import httpx

from finance_tracker.services.rates import (
    FetchParseError,
    FetchTransportError,
    RateSource,
    RateTable,
    normalize_currency,
)

logger = logging.getLogger(__name__)


class RatesProvider(Protocol):
    async def fetch_latest(self) -> RateTable: ...

    async def close(self) -> None: ...


class OpenExchangeRatesClient:
    """Client for the ``/latest.json`` endpoint of openexchangerates.org."""

    def __init__(
        self,
        base_url: str,
        app_id: str,
        *,
        base_currency: str = "USD",
        timeout_seconds: int = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._app_id = app_id
        self._base_currency = normalize_currency(base_currency)
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    async def fetch_latest(self) -> RateTable:
        try:
            response = await self._client.get(
                f"{self._base_url}/latest.json",
                params={"app_id": self._app_id},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchTransportError(
                f"rates provider returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchTransportError(f"{type(exc).__name__}: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchParseError("rates provider returned invalid JSON") from exc

        return RateTable(
            rates=_parse_rates(payload),
            base=self._base_currency,
            source=RateSource.live,
        )

    async def close(self) -> None:
        await self._client.aclose()


def _parse_rates(payload: Any) -> dict[str, float]:
    if not isinstance(payload, dict):
        raise FetchParseError("rates payload is not an object")
    raw_rates = payload.get("rates")
    if not isinstance(raw_rates, dict):
        raise FetchParseError("rates payload missing 'rates' object")

    parsed: dict[str, float] = {}
    skipped: list[str] = []
    for code, value in raw_rates.items():
        if not isinstance(code, str) or isinstance(value, bool):
            skipped.append(str(code))
            continue
        try:
            rate = float(value)
        except (TypeError, ValueError):
            skipped.append(code)
            continue
        if not math.isfinite(rate) or rate <= 0:
            skipped.append(code)
            continue
        parsed[normalize_currency(code)] = rate

    if skipped:
        logger.warning("Dropped %d unusable rate entries: %s", len(skipped), ", ".join(skipped))
    if not parsed:
        raise FetchParseError("rates payload contains no usable rates")
    return parsed
