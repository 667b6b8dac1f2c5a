"""HTTP controller layer for booking conflicts and lifecycle."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from roombook.controllers.dependencies import (
    as_utc,
    get_booking_service,
    get_matching_service,
)
from roombook.domain.constraints import SchedulingError
from roombook.domain.models import Interval, Reservation, ReservationStatus, Room
from roombook.services.availability_service import RoomNotFoundError
from roombook.services.booking_service import (
    BookingConflictError,
    BookingService,
    ReservationNotFoundError,
)
from roombook.services.matching_service import RoomRecommendationService
from roombook.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


class ReservationResponse(BaseModel):
    id: str
    room_id: str
    title: str
    start: datetime
    end: datetime
    status: str
    recurrence_rule: Optional[str] = None

    @classmethod
    def from_domain(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(
            id=reservation.reservation_id,
            room_id=reservation.room_id,
            title=reservation.title,
            start=reservation.interval.start,
            end=reservation.interval.end,
            status=reservation.status.value,
            recurrence_rule=reservation.recurrence_rule,
        )


class ConflictResponse(BaseModel):
    conflict: Optional[ReservationResponse] = None


class CreateBookingRequest(BaseModel):
    room_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=120)
    start: datetime
    end: datetime
    status: Optional[Literal["PENDING", "CONFIRMED"]] = None
    recurrence_rule: Optional[str] = Field(default=None, max_length=500)

    @field_validator("start", "end")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class UpdateBookingRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=120)
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class RecommendRequest(BaseModel):
    start: datetime
    end: datetime
    capacity: Optional[int] = None
    site_id: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class RoomSummary(BaseModel):
    id: str
    name: str
    capacity: int

    @classmethod
    def from_domain(cls, room: Room) -> "RoomSummary":
        return cls(id=room.room_id, name=room.name, capacity=room.capacity)


class RecommendResponse(BaseModel):
    room: Optional[RoomSummary] = None


def _conflict_http_error(exc: BookingConflictError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": "CONFLICT",
            "conflict": ReservationResponse.from_domain(exc.conflict).model_dump(mode="json"),
        },
    )


@router.get("/conflicts", response_model=ConflictResponse, status_code=status.HTTP_200_OK)
async def get_conflict(
    room_id: str = Query(min_length=1),
    start: datetime = Query(),
    end: datetime = Query(),
    exclude_id: Optional[str] = Query(default=None),
    service: BookingService = Depends(get_booking_service),
) -> ConflictResponse:
    """Report one active reservation overlapping the requested slot, if any."""
    try:
        interval = Interval(start=as_utc(start), end=as_utc(end))
        conflict = service.find_conflict(room_id, interval, exclude_reservation_id=exclude_id)
        if conflict is None:
            return ConflictResponse(conflict=None)
        return ConflictResponse(conflict=ReservationResponse.from_domain(conflict))
    except SchedulingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected conflict lookup failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check conflicts",
        ) from exc


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
) -> ReservationResponse:
    try:
        reservation = service.create_booking(
            room_id=payload.room_id,
            interval=Interval(start=payload.start, end=payload.end),
            title=payload.title,
            status=ReservationStatus(payload.status) if payload.status else None,
            recurrence_rule=payload.recurrence_rule,
        )
        return ReservationResponse.from_domain(reservation)
    except SchedulingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except RoomNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BookingConflictError as exc:
        raise _conflict_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc


@router.patch("/{reservation_id}", response_model=ReservationResponse, status_code=status.HTTP_200_OK)
async def update_booking(
    reservation_id: str,
    payload: UpdateBookingRequest,
    service: BookingService = Depends(get_booking_service),
) -> ReservationResponse:
    try:
        if (payload.start is None) != (payload.end is None):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="start and end must be provided together",
            )
        interval = (
            Interval(start=payload.start, end=payload.end)
            if payload.start is not None and payload.end is not None
            else None
        )
        reservation = service.reschedule_booking(
            reservation_id,
            interval=interval,
            title=payload.title,
        )
        return ReservationResponse.from_domain(reservation)
    except HTTPException:
        raise
    except SchedulingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ReservationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BookingConflictError as exc:
        raise _conflict_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking update failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update booking",
        ) from exc


@router.post(
    "/{reservation_id}/cancel",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_booking(
    reservation_id: str,
    service: BookingService = Depends(get_booking_service),
) -> ReservationResponse:
    try:
        return ReservationResponse.from_domain(service.cancel_booking(reservation_id))
    except SchedulingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ReservationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel booking",
        ) from exc


@router.post("/recommend", response_model=RecommendResponse, status_code=status.HTTP_200_OK)
async def recommend_room(
    payload: RecommendRequest,
    service: RoomRecommendationService = Depends(get_matching_service),
) -> RecommendResponse:
    """Smallest active room (same site, enough seats) that is free for the slot."""
    try:
        room = service.first_free_room(
            window=Interval(start=payload.start, end=payload.end),
            desired_capacity=payload.capacity,
            site_id=payload.site_id,
        )
        return RecommendResponse(room=RoomSummary.from_domain(room) if room else None)
    except SchedulingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected room recommendation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to recommend a room",
        ) from exc
