from contextlib import asynccontextmanager

from fastapi import FastAPI

from booking_engine.api.v1.engagements import router as engagements_router
from booking_engine.api.v1.notifications import router as notifications_router
from booking_engine.api.v1.subjects import router as subjects_router
from booking_engine.core.config import settings
from booking_engine.core.logging import configure_logging
from booking_engine.wiring.dependencies import get_engine

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = get_engine()
    if settings.REFRESH_ENABLED:
        engine.watch_feed()
        engine.scheduler.start()
    try:
        yield
    finally:
        await engine.close()
        get_engine.cache_clear()


app = FastAPI(title="Availability & Booking Coordination Engine", version="1.0.0", lifespan=lifespan)

app.include_router(subjects_router, prefix="/api/v1", tags=["subjects"])
app.include_router(engagements_router, prefix="/api/v1", tags=["engagements"])
app.include_router(notifications_router, prefix="/api/v1", tags=["notifications"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
