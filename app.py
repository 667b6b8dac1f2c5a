"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from roombook.controllers.booking_controller import router as booking_router
from roombook.controllers.report_controller import router as report_router
from roombook.controllers.room_controller import router as room_router
from roombook.repository.data_repository import DataRepository
from roombook.services.availability_service import AvailabilityService
from roombook.services.booking_service import BookingService
from roombook.services.matching_service import RoomRecommendationService
from roombook.services.report_service import OccupancyReportService
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service shares one repository and is exposed on app.state for the
    dependency providers in roombook.controllers.dependencies.
    """
    settings = settings or get_settings()

    repository = DataRepository(settings)
    booking_service = BookingService(repository=repository, settings=settings)
    availability_service = AvailabilityService(repository=repository, settings=settings)
    matching_service = RoomRecommendationService(repository=repository, settings=settings)
    report_service = OccupancyReportService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(booking_router)
    app.include_router(room_router)
    app.include_router(report_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.booking_service = booking_service
    app.state.availability_service = availability_service
    app.state.matching_service = matching_service
    app.state.report_service = report_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema first, then the demo room catalog (skipped when rooms exist or
    seeding is disabled).
    """
    repository: DataRepository = app.state.repository
    settings: Settings = app.state.settings

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo room catalog")
        repository.seed_demo_data()

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
