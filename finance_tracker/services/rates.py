from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType


class RateFetchError(RuntimeError):
    """Raised when the rates provider cannot produce a usable rate table."""


class FetchTransportError(RateFetchError):
    """Network failure, timeout or non-2xx response from the provider."""


class FetchParseError(RateFetchError):
    """Provider answered but the body has no usable ``rates`` object."""


class RateSource(StrEnum):
    live = "live"
    fallback = "fallback"


def normalize_currency(value: str) -> str:
    return value.strip().upper()


@dataclass(frozen=True, slots=True)
class RateTable:
    """Currency code -> units of that currency per one unit of ``base``."""

    rates: Mapping[str, float]
    base: str = "USD"
    source: RateSource = RateSource.live

    def __post_init__(self) -> None:
        frozen = MappingProxyType(
            {normalize_currency(code): float(rate) for code, rate in self.rates.items()}
        )
        object.__setattr__(self, "rates", frozen)
        object.__setattr__(self, "base", normalize_currency(self.base))

    def __len__(self) -> int:
        return len(self.rates)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and self.get(code) is not None

    def get(self, code: str) -> float | None:
        # A zero rate is as useless as a missing one.
        rate = self.rates.get(code)
        return rate if rate else None

    @property
    def is_fallback(self) -> bool:
        return self.source == RateSource.fallback

    def to_dict(self) -> dict[str, float]:
        return dict(self.rates)


@dataclass(frozen=True, slots=True)
class RateSnapshot:
    table: RateTable
    fetched_at: float


@dataclass(frozen=True, slots=True)
class ConversionQuote:
    amount: float
    from_currency: str
    to_currency: str
    converted_amount: float
    exchange_rate: float
    rates_source: RateSource | None = None


def build_fallback_table(rates: Mapping[str, float], base: str = "USD") -> RateTable:
    return RateTable(rates=rates, base=base, source=RateSource.fallback)
