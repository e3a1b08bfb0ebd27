"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Compliance Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.observability import configure_logging, ObservabilityMiddleware
from backend.app.core.redis_client import ping_redis, close_redis
from backend.app.db.session import engine, Base
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.vehicle import Vehicle
from backend.app.models.maintenance import MaintenanceTaskType, MaintenanceVendor, MaintenanceRecord
from backend.app.models.spill_incident import SpillIncidentReport, IncidentPhoto, IncidentWitness
from backend.app.models.decon_log import DeconLog
from backend.app.models.spill_kit import (
    SpillKitTemplate,
    SpillKitTemplateItem,
    VehicleSpillKitCheck,
    SpillKitRestockRequest,
)
from backend.app.models.company_settings import CompanySettings, CompanyMaintenanceSettings
from backend.app.models.offline_submission import OfflineSubmission
from backend.app.models.audit_log import AuditLog


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging and creates database tables on startup.
    2. Closes the Redis connection pool on shutdown.
    """
    configure_logging(settings.log_level)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_redis()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Fleet maintenance scheduling and environmental compliance API",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Redis only backs the query cache, so an unreachable Redis reports
    "degraded" rather than failing the check.
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "ok" if redis_ok else "unavailable",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Fleet Compliance Backend API",
        "docs": "/docs",
        "health": "/health",
    }
