"""
FastAPI Application Entry Point.

This is the main application file for the Adera parcel service.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from adera_backend.app.core.config import settings
from adera_backend.app.api.v1.router import router as api_v1_router
from adera_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from adera_backend.app.db.session import engine, Base
from adera_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from adera_backend.app.models.partner_location import PartnerLocation  # noqa: F401
from adera_backend.app.models.address import Address  # noqa: F401
from adera_backend.app.models.parcel import Parcel  # noqa: F401
from adera_backend.app.models.transaction import Transaction  # noqa: F401
from adera_backend.app.models.parcel_status_history import ParcelStatusHistory  # noqa: F401

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup and disposes the engine pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Parcel lifecycle, listing and statistics API",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to the Adera Parcel Service API",
        "docs": "/docs",
        "health": "/health",
    }
