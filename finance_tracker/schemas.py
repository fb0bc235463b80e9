from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from finance_tracker.services.fx import CacheState
from finance_tracker.services.rates import RateSource


class BatchConversionRequest(BaseModel):
    amounts: list[float] = Field(default_factory=list)
    from_currency: str = Field(..., min_length=3, max_length=3)
    to_currency: str = Field(..., min_length=3, max_length=3)

    @field_validator("from_currency", "to_currency")
    @classmethod
    def _validate_currency(cls, value: str) -> str:
        return value.strip().upper()


class PrewarmRequest(BaseModel):
    preferred_currency: str | None = Field(default=None, min_length=3, max_length=3)

    @field_validator("preferred_currency")
    @classmethod
    def _validate_currency(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().upper()


class RatesOut(BaseModel):
    base: str
    source: RateSource
    rates: dict[str, float]


class ConversionQuoteOut(BaseModel):
    amount: float
    from_currency: str
    to_currency: str
    converted_amount: float
    exchange_rate: float
    rates_source: RateSource | None = None


class CachedConversionOut(BaseModel):
    amount: float
    from_currency: str
    to_currency: str
    converted_amount: float


class BatchConversionOut(BaseModel):
    from_currency: str
    to_currency: str
    amounts: list[float]
    converted_amounts: list[float]


class PrewarmOut(BaseModel):
    source: RateSource
    currency_count: int
    preferred_currency: str | None = None
    preferred_currency_known: bool | None = None


class FxHealthResponse(BaseModel):
    state: CacheState
    currency_count: int
    age_seconds: float | None = None
    ttl_seconds: float
