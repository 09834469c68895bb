"""
FastAPI application initialization
"""

from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import health, alerts, keywords, sync_runs
from api.middleware import RequestContextMiddleware
from core.config import settings, load_tracking_config
from core.exceptions import StorageError
from core.logging import setup_logging
from schemas.api import ErrorResponse
from tracking.scheduler import TrackingScheduler
import logging

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="SERP Position Tracker API",
    description="Keyword positions, alerts and sync history",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(alerts.router)
app.include_router(keywords.router)
app.include_router(sync_runs.router)

scheduler: Optional[TrackingScheduler] = None


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(error="Storage unavailable", detail=exc.message).model_dump(mode="json")
    )


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    global scheduler

    setup_logging()
    logger.info("Starting SERP Position Tracker API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.SCHEDULER_ENABLED:
        scheduler = TrackingScheduler(config=load_tracking_config(settings))
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down SERP Position Tracker API")
    if scheduler is not None:
        scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "SERP Position Tracker API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "alerts": "/alerts",
            "positions": "/keywords/positions",
            "sync_runs": "/sync-runs"
        }
    }
