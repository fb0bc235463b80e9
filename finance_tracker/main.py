from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from finance_tracker.api.routes import router
from finance_tracker.config import get_settings
from finance_tracker.logging import configure_logging
from finance_tracker.services.fx import FxService

configure_logging()
settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    fx_service = FxService.from_settings(settings)
    app.state.fx_service = fx_service
    if settings.fx_prewarm_on_startup:
        table = await fx_service.prewarm()
        logger.info("FX rates prewarmed source=%s currencies=%d", table.source, len(table))

    yield

    await fx_service.close()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.include_router(router, prefix=settings.api_prefix)
