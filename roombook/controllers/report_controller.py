"""HTTP controller layer for occupancy reports."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from roombook.controllers.dependencies import as_utc, get_availability_service, get_report_service
from roombook.domain.constraints import SchedulingError
from roombook.services.availability_service import AvailabilityService
from roombook.services.report_service import OccupancyReportService
from roombook.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


class OccupancyRow(BaseModel):
    room_id: str
    room_name: str
    reservation_count: int = Field(ge=0)
    booked_minutes: float = Field(ge=0.0)
    occupancy_rate: float = Field(ge=0.0, le=1.0)


@router.get("/occupancy", response_model=list[OccupancyRow], status_code=status.HTTP_200_OK)
async def occupancy_report(
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    site_id: Optional[str] = Query(default=None),
    service: OccupancyReportService = Depends(get_report_service),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> list[OccupancyRow]:
    try:
        window = availability_service.resolve_window(as_utc(start), as_utc(end))
        report = service.occupancy(window, site_id=site_id)
        return [
            OccupancyRow(
                room_id=row.room_id,
                room_name=row.room_name,
                reservation_count=row.reservation_count,
                booked_minutes=row.booked_minutes,
                occupancy_rate=row.occupancy_rate,
            )
            for row in report
        ]
    except SchedulingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected occupancy report failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build occupancy report",
        ) from exc
