"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException, Request, status

from roombook.services.availability_service import AvailabilityService
from roombook.services.booking_service import BookingService
from roombook.services.matching_service import RoomRecommendationService
from roombook.services.report_service import OccupancyReportService


def _service_from_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} service is not initialized",
        )
    return service


def get_booking_service(request: Request) -> BookingService:
    return _service_from_state(request, "booking_service", "Booking")


def get_availability_service(request: Request) -> AvailabilityService:
    return _service_from_state(request, "availability_service", "Availability")


def get_matching_service(request: Request) -> RoomRecommendationService:
    return _service_from_state(request, "matching_service", "Matching")


def get_report_service(request: Request) -> OccupancyReportService:
    return _service_from_state(request, "report_service", "Report")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps from clients as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
