from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from finance_tracker.schemas import (
    BatchConversionOut,
    BatchConversionRequest,
    CachedConversionOut,
    ConversionQuoteOut,
    FxHealthResponse,
    PrewarmOut,
    PrewarmRequest,
    RatesOut,
)
from finance_tracker.services.fx import FxService

router = APIRouter()

_CURRENCY_QUERY = {"min_length": 3, "max_length": 3}


def get_fx_service(request: Request) -> FxService:
    return request.app.state.fx_service


@router.get("/fx/rates", response_model=RatesOut)
async def get_rates(fx: FxService = Depends(get_fx_service)) -> RatesOut:
    table = await fx.get_rates()
    return RatesOut(base=table.base, source=table.source, rates=table.to_dict())


@router.get("/fx/convert", response_model=ConversionQuoteOut)
async def convert_amount(
    amount: float,
    from_currency: str = Query(..., **_CURRENCY_QUERY),
    to_currency: str = Query(..., **_CURRENCY_QUERY),
    enabled: bool = True,
    fx: FxService = Depends(get_fx_service),
) -> ConversionQuoteOut:
    quote = await fx.quote(amount, from_currency, to_currency, enabled=enabled)
    return ConversionQuoteOut(
        amount=quote.amount,
        from_currency=quote.from_currency,
        to_currency=quote.to_currency,
        converted_amount=quote.converted_amount,
        exchange_rate=quote.exchange_rate,
        rates_source=quote.rates_source,
    )


@router.get("/fx/convert/cached", response_model=CachedConversionOut)
async def convert_amount_cached(
    amount: float,
    from_currency: str = Query(..., **_CURRENCY_QUERY),
    to_currency: str = Query(..., **_CURRENCY_QUERY),
    fx: FxService = Depends(get_fx_service),
) -> CachedConversionOut:
    return CachedConversionOut(
        amount=amount,
        from_currency=from_currency.strip().upper(),
        to_currency=to_currency.strip().upper(),
        converted_amount=fx.convert_sync(amount, from_currency, to_currency),
    )


@router.post("/fx/convert/batch", response_model=BatchConversionOut)
async def convert_batch(
    payload: BatchConversionRequest,
    fx: FxService = Depends(get_fx_service),
) -> BatchConversionOut:
    converted = await fx.convert_multiple(
        payload.amounts, payload.from_currency, payload.to_currency
    )
    return BatchConversionOut(
        from_currency=payload.from_currency,
        to_currency=payload.to_currency,
        amounts=payload.amounts,
        converted_amounts=list(converted),
    )


@router.post("/fx/prewarm", response_model=PrewarmOut)
async def prewarm_rates(
    payload: PrewarmRequest,
    fx: FxService = Depends(get_fx_service),
) -> PrewarmOut:
    table = await fx.prewarm()
    known = payload.preferred_currency in table if payload.preferred_currency else None
    return PrewarmOut(
        source=table.source,
        currency_count=len(table),
        preferred_currency=payload.preferred_currency,
        preferred_currency_known=known,
    )


@router.get("/health/fx", response_model=FxHealthResponse)
async def fx_health(fx: FxService = Depends(get_fx_service)) -> FxHealthResponse:
    status = fx.cache_status()
    return FxHealthResponse(
        state=status.state,
        currency_count=status.currency_count,
        age_seconds=status.age_seconds,
        ttl_seconds=status.ttl_seconds,
    )
