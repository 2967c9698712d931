"""FastAPI application factory for Supply Sentinel."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from supply_sentinel.common.config import get_settings
from supply_sentinel.common.logging import setup_logging
from supply_sentinel.common.schemas import HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from supply_sentinel.deps import get_db, get_enricher
        db = get_db()
        await db.init()
        await db.create_all()
        enricher = get_enricher()
        if enricher.enabled:
            enricher.start()
        yield
        # Shutdown
        await enricher.stop()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from supply_sentinel.anomaly.router import router as anomaly_router
    from supply_sentinel.audit.router import router as history_router

    prefix = settings.api_prefix
    app.include_router(anomaly_router, prefix=prefix, tags=["anomalies"])
    app.include_router(history_router, prefix=prefix, tags=["history"])

    return app
