"""
FastAPI Application Entry Point.

This is the main application file for the Freight Ledger Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from freight_backend.app.core.config import settings
from freight_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from freight_backend.app.core.redis_client import close_redis, ping_redis
from freight_backend.app.api.v1.router import router as api_v1_router
from freight_backend.app.db.session import engine, Base
from freight_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from freight_backend.app.models.agent import Agent
from freight_backend.app.models.audit_log import AuditLog
from freight_backend.app.models.trip import Trip
from freight_backend.app.models.trip_payment import TripPayment
from freight_backend.app.models.trip_attachment import TripAttachment
from freight_backend.app.models.ledger_entry import LedgerEntry
from freight_backend.app.models.agent_balance import AgentBalance
from freight_backend.app.models.dispute import Dispute

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    if settings.trip_lease_backend == "redis":
        await close_redis()
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Trip financial ledger for road-freight trips and agent cash balances",
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

    Redis is only reported when it backs the trip lease.
    """
    body = {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }
    if settings.trip_lease_backend == "redis":
        body["redis"] = "up" if await ping_redis() else "down"
    return body


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Freight Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
    }
