# backend/studio_booking/main.py
"""
FastAPI application for the studio booking core.

All endpoints are mounted under /api/v1.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import __version__
from .core.config import is_running_tests, settings
from .database import Base, engine
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes.v1 import (
    availability as availability_v1,
    bookings as bookings_v1,
    metrics as metrics_v1,
    slot_locks as slot_locks_v1,
    stripe_webhooks as stripe_webhooks_v1,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = "Studio Booking API"
API_DESCRIPTION = "Booking core for the recording-studio marketplace"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    if settings.auto_create_tables:
        from . import models  # noqa: F401  (registers every table on Base.metadata)

        Base.metadata.create_all(bind=engine)

    yield

    logger.info(f"{API_TITLE} shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

register_error_handlers(app)
app.add_middleware(PrometheusMiddleware)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

api_v1.include_router(slot_locks_v1.router, prefix="/slot-locks")
api_v1.include_router(availability_v1.router, prefix="/availability")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(stripe_webhooks_v1.router, prefix="/webhooks")
api_v1.include_router(metrics_v1.router)

app.include_router(api_v1)


@app.get("/")
def root() -> dict:
    """Root endpoint - API information"""
    return {"message": API_TITLE, "version": __version__, "docs": "/docs"}


__all__ = ["app"]
