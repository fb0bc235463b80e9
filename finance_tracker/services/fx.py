from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum

from finance_tracker.config import DEFAULT_FALLBACK_RATES, Settings
from finance_tracker.services.rate_provider import OpenExchangeRatesClient, RatesProvider
from finance_tracker.services.rates import (
    ConversionQuote,
    RateFetchError,
    RateSnapshot,
    RateTable,
    build_fallback_table,
    normalize_currency,
)

logger = logging.getLogger(__name__)


class CacheState(StrEnum):
    empty = "empty"
    fetching = "fetching"
    populated = "populated"
    stale = "stale"


@dataclass(frozen=True, slots=True)
class CacheStatus:
    state: CacheState
    currency_count: int
    age_seconds: float | None
    ttl_seconds: float


class FxService:
    """Caches the provider's rate table and converts amounts with it.

    Every rate in the table is "units of currency per 1 unit of base".
    Concurrent callers that find the cache expired share one provider
    fetch. A failed fetch answers with the static fallback table and
    leaves the cache slot untouched, so the next call tries again.
    Conversions never raise: unknown currencies leave the amount as is.
    """

    def __init__(
        self,
        provider: RatesProvider,
        *,
        fallback_rates: Mapping[str, float] | None = None,
        ttl_seconds: float = 24 * 60 * 60,
        base_currency: str = "USD",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._ttl_seconds = ttl_seconds
        self._base_currency = normalize_currency(base_currency)
        self._fallback = build_fallback_table(
            fallback_rates if fallback_rates is not None else DEFAULT_FALLBACK_RATES,
            base=self._base_currency,
        )
        self._clock = clock
        self._snapshot: RateSnapshot | None = None
        self._inflight: asyncio.Task[RateTable] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> FxService:
        provider = OpenExchangeRatesClient(
            settings.fx_provider_base_url,
            settings.fx_app_id,
            base_currency=settings.fx_base_currency,
            timeout_seconds=settings.request_timeout_seconds,
        )
        return cls(
            provider,
            fallback_rates=settings.fx_fallback_rates,
            ttl_seconds=settings.fx_rate_ttl_seconds,
            base_currency=settings.fx_base_currency,
        )

    @property
    def base_currency(self) -> str:
        return self._base_currency

    @property
    def fallback_table(self) -> RateTable:
        return self._fallback

    @property
    def last_fetched_at(self) -> float | None:
        snapshot = self._snapshot
        return snapshot.fetched_at if snapshot else None

    def _is_fresh(self, snapshot: RateSnapshot) -> bool:
        return len(snapshot.table) > 0 and self._clock() - snapshot.fetched_at < self._ttl_seconds

    async def get_rates(self) -> RateTable:
        snapshot = self._snapshot
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot.table

        task = self._inflight
        if task is None:
            task = asyncio.create_task(self._refresh())
            self._inflight = task
        else:
            logger.debug("Joining in-flight rates fetch")
        # Waiters may be cancelled; the shared fetch must still finish for the others.
        return await asyncio.shield(task)

    async def _refresh(self) -> RateTable:
        started = self._clock()
        logger.debug("Fetching latest rates")
        try:
            table = await self._provider.fetch_latest()
        except RateFetchError as exc:
            logger.warning("Rates fetch failed, serving fallback rates: %s", exc)
            table = self._fallback
        except Exception:
            logger.exception("Unexpected error fetching rates, serving fallback rates")
            table = self._fallback
        else:
            self._snapshot = RateSnapshot(table=table, fetched_at=started)
            logger.info("Fetched %d exchange rates (base=%s)", len(table), table.base)
        finally:
            self._inflight = None
        return table

    async def prewarm(self) -> RateTable:
        return await self.get_rates()

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        source = normalize_currency(from_currency)
        target = normalize_currency(to_currency)
        if source == target:
            return amount
        table = await self.get_rates()
        return _convert_with(table, amount, source, target)

    async def get_rate(self, from_currency: str, to_currency: str) -> float:
        source = normalize_currency(from_currency)
        target = normalize_currency(to_currency)
        if source == target:
            return 1.0
        table = await self.get_rates()
        return self._rate_with(table, source, target)

    async def convert_multiple(
        self, amounts: Sequence[float], from_currency: str, to_currency: str
    ) -> Sequence[float]:
        source = normalize_currency(from_currency)
        target = normalize_currency(to_currency)
        if source == target:
            return amounts

        table = await self.get_rates()
        rate_from = table.get(source)
        rate_to = table.get(target)
        if rate_from is None or rate_to is None:
            return amounts
        return [amount / rate_from * rate_to for amount in amounts]

    def convert_sync(self, amount: float, from_currency: str, to_currency: str) -> float:
        source = normalize_currency(from_currency)
        target = normalize_currency(to_currency)
        if source == target:
            return amount
        snapshot = self._snapshot
        if snapshot is None:
            return amount
        # Stale tables are still good enough for callers that cannot await.
        return _convert_with(snapshot.table, amount, source, target)

    async def quote(
        self,
        amount: float,
        from_currency: str,
        to_currency: str,
        *,
        enabled: bool = True,
    ) -> ConversionQuote:
        source = normalize_currency(from_currency)
        target = normalize_currency(to_currency)
        if not enabled or source == target:
            return ConversionQuote(
                amount=amount,
                from_currency=source,
                to_currency=target,
                converted_amount=amount,
                exchange_rate=1.0,
            )

        table = await self.get_rates()
        return ConversionQuote(
            amount=amount,
            from_currency=source,
            to_currency=target,
            converted_amount=_convert_with(table, amount, source, target),
            exchange_rate=self._rate_with(table, source, target),
            rates_source=table.source,
        )

    def _rate_with(self, table: RateTable, source: str, target: str) -> float:
        rate_from = table.get(source)
        rate_to = table.get(target)
        if rate_from is None or rate_to is None:
            return 1.0
        # Against the base the rate reads "1 base = rate_from units of source".
        if target == self._base_currency:
            return rate_from
        return rate_to / rate_from

    def cache_status(self) -> CacheStatus:
        snapshot = self._snapshot
        if self._inflight is not None:
            state = CacheState.fetching
        elif snapshot is None:
            state = CacheState.empty
        elif self._is_fresh(snapshot):
            state = CacheState.populated
        else:
            state = CacheState.stale
        return CacheStatus(
            state=state,
            currency_count=len(snapshot.table) if snapshot else 0,
            age_seconds=self._clock() - snapshot.fetched_at if snapshot else None,
            ttl_seconds=self._ttl_seconds,
        )

    async def close(self) -> None:
        task = self._inflight
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        await self._provider.close()


def _convert_with(table: RateTable, amount: float, source: str, target: str) -> float:
    rate_from = table.get(source)
    rate_to = table.get(target)
    if rate_from is None or rate_to is None:
        logger.debug("No rate for %s or %s; leaving amount unconverted", source, target)
        return amount
    amount_in_base = amount / rate_from
    return amount_in_base * rate_to
