# airview/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from airview.database import engine, settings
from airview.errors import AirViewError
from airview.logging_config import setup_logging
from airview.models import Base
from airview.services.scheduler import start_scheduler, stop_scheduler

# Routers
from airview.routers import (
    devices_router,
    health_router,
    providers_router,
    readings_router,
    users_router,
    webhooks_router,
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="AirView API",
        description="Air-quality sensor sync, ingestion and history API",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service errors carry their own status code and a displayable message
    @app.exception_handler(AirViewError)
    async def airview_error_handler(request: Request, exc: AirViewError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Mount router
    app.include_router(health_router)        # /healthz, /api/v1/health
    app.include_router(devices_router)       # /api/v1/devices/...
    app.include_router(readings_router)      # /api/v1/readings/...
    app.include_router(providers_router)     # /api/v1/providers/...
    app.include_router(webhooks_router)      # /webhooks/qingping/{tenant_id}
    app.include_router(users_router)         # /api/v1/users/...

    # Startup: DB + scheduler (idempotent)
    @app.on_event("startup")
    async def _startup():
        setup_logging()
        Base.metadata.create_all(bind=engine)
        if settings.scheduler_enabled:
            start_scheduler()

    @app.on_event("shutdown")
    async def _shutdown():
        stop_scheduler()

    return app


app = create_app()
