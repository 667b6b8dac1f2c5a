"""HTTP controller layer for room timelines, availability and suggestions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from roombook.controllers.dependencies import (
    as_utc,
    get_availability_service,
    get_matching_service,
)
from roombook.domain.constraints import SchedulingError
from roombook.domain.models import Interval, Room, Segment
from roombook.services.availability_service import AvailabilityService, RoomNotFoundError
from roombook.services.matching_service import RoomRecommendationService
from roombook.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])


class SegmentResponse(BaseModel):
    """Timeline segment; instants are epoch milliseconds."""

    id: Optional[str] = None
    start: int
    end: int
    status: str
    title: Optional[str] = None

    @classmethod
    def from_domain(cls, segment: Segment) -> "SegmentResponse":
        return cls(**segment.to_dict())


class RoomResponse(BaseModel):
    id: str
    name: str
    capacity: int = Field(gt=0)
    site_id: Optional[str] = None
    equipment: list[str]
    is_active: bool

    @classmethod
    def from_domain(cls, room: Room) -> "RoomResponse":
        return cls(
            id=room.room_id,
            name=room.name,
            capacity=room.capacity,
            site_id=room.site_id,
            equipment=sorted(room.equipment_tags),
            is_active=room.is_active,
        )


class TimeRangeRequest(BaseModel):
    start: datetime
    end: datetime
    site_id: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ConflictingBookingResponse(BaseModel):
    id: str
    title: str
    start: datetime
    end: datetime
    status: str


class RoomAvailabilityResponse(BaseModel):
    room: RoomResponse
    is_available: bool
    conflicting_booking: Optional[ConflictingBookingResponse] = None


class SuggestionsRequest(TimeRangeRequest):
    capacity: int


class SuggestionResponse(BaseModel):
    room: RoomResponse
    match_score: int = Field(ge=0, le=100)
    available: bool


class SuggestionsResponse(BaseModel):
    rooms: list[SuggestionResponse]


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get(
    "/{room_id}/availability",
    response_model=list[SegmentResponse],
    status_code=status.HTTP_200_OK,
)
async def room_availability(
    room_id: str,
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[SegmentResponse]:
    """Occupied segments of a room; defaults to the next 24 hours."""
    try:
        window = service.resolve_window(as_utc(start), as_utc(end))
        segments = service.get_room_availability(room_id, window)
        return [SegmentResponse.from_domain(segment) for segment in segments]
    except SchedulingError as exc:
        raise _bad_request(exc) from exc
    except RoomNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room availability failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute room availability",
        ) from exc


@router.get(
    "/{room_id}/free_slots",
    response_model=list[SegmentResponse],
    status_code=status.HTTP_200_OK,
)
async def room_free_slots(
    room_id: str,
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[SegmentResponse]:
    try:
        window = service.resolve_window(as_utc(start), as_utc(end))
        segments = service.get_free_slots(room_id, window)
        return [SegmentResponse.from_domain(segment) for segment in segments]
    except SchedulingError as exc:
        raise _bad_request(exc) from exc
    except RoomNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected free slot failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute free slots",
        ) from exc


@router.post(
    "/availability",
    response_model=list[RoomAvailabilityResponse],
    status_code=status.HTTP_200_OK,
)
async def rooms_availability(
    payload: TimeRangeRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> list[RoomAvailabilityResponse]:
    try:
        results = service.check_rooms(
            Interval(start=payload.start, end=payload.end),
            site_id=payload.site_id,
        )
    except SchedulingError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected rooms availability failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check room availability",
        ) from exc

    rows: list[RoomAvailabilityResponse] = []
    for item in results:
        conflict = item.conflicting_reservation
        rows.append(
            RoomAvailabilityResponse(
                room=RoomResponse.from_domain(item.room),
                is_available=item.is_available,
                conflicting_booking=(
                    ConflictingBookingResponse(
                        id=conflict.reservation_id,
                        title=conflict.title,
                        start=conflict.interval.start,
                        end=conflict.interval.end,
                        status=conflict.status.value,
                    )
                    if conflict is not None
                    else None
                ),
            )
        )
    return rows


@router.post("/suggestions", response_model=SuggestionsResponse, status_code=status.HTTP_200_OK)
async def room_suggestions(
    payload: SuggestionsRequest,
    service: RoomRecommendationService = Depends(get_matching_service),
) -> SuggestionsResponse:
    """Rank fully free rooms for a headcount; partially free rooms never appear."""
    try:
        suggestions = service.suggest_rooms(
            desired_capacity=payload.capacity,
            window=Interval(start=payload.start, end=payload.end),
            site_id=payload.site_id,
        )
        return SuggestionsResponse(
            rooms=[
                SuggestionResponse(
                    room=RoomResponse.from_domain(item.room),
                    match_score=item.match_score,
                    available=item.available,
                )
                for item in suggestions
            ]
        )
    except SchedulingError as exc:
        raise _bad_request(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room suggestion failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute room suggestions",
        ) from exc
