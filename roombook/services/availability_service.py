"""Availability timelines: occupied segments and free gaps inside a window."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from roombook.domain.constraints import InvalidArgument
from roombook.domain.models import (
    Interval,
    Reservation,
    ReservationStatus,
    RoomAvailability,
    Segment,
    SegmentStatus,
)
from roombook.repository.data_repository import DataRepository
from roombook.services.conflict_service import (
    check_rooms_availability,
    intervals_overlap,
    require_interval,
)
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger


logger = get_logger(__name__)


_SEGMENT_STATUS_BY_RESERVATION_STATUS = {
    ReservationStatus.CONFIRMED: SegmentStatus.BUSY,
    ReservationStatus.PENDING: SegmentStatus.PENDING,
}


class RoomNotFoundError(Exception):
    """Raised when a room id does not exist in persisted state."""


def compute_availability(
    room_id: str,
    window: Interval,
    existing: Sequence[Reservation],
) -> list[Segment]:
    """Return the occupied parts of ``window`` for one room.

    Each overlapping reservation becomes one segment clipped to the window.
    Overlapping reservations are not merged, so anomalies in stored data stay
    visible. Segments are sorted by clipped start; ties keep input order.
    """
    require_interval(window, "window")
    segments: list[Segment] = []
    for reservation in existing:
        if not intervals_overlap(reservation.interval, window):
            continue
        segment_status = _SEGMENT_STATUS_BY_RESERVATION_STATUS.get(reservation.status)
        if segment_status is None:
            raise InvalidArgument(
                f"reservation {reservation.reservation_id} has inactive status "
                f"{reservation.status.value}; filter before computing availability"
            )
        segments.append(
            Segment(
                segment_id=reservation.reservation_id,
                interval=reservation.interval.clip_to(window),
                status=segment_status,
                title=reservation.title,
            )
        )

    segments.sort(key=lambda segment: segment.interval.start)
    logger.debug(
        "Availability computed | room_id=%s | reservations=%s | segments=%s",
        room_id,
        len(existing),
        len(segments),
    )
    return segments


def compute_free_slots(window: Interval, existing: Sequence[Reservation]) -> list[Segment]:
    """Return the gaps of ``window`` not covered by any reservation."""
    require_interval(window, "window")
    occupied = sorted(
        (
            reservation.interval.clip_to(window)
            for reservation in existing
            if intervals_overlap(reservation.interval, window)
        ),
        key=lambda interval: interval.start,
    )

    free_segments: list[Segment] = []
    cursor = window.start
    for interval in occupied:
        if interval.start > cursor:
            free_segments.append(_free_segment(cursor, interval.start))
        if interval.end > cursor:
            cursor = interval.end
    if cursor < window.end:
        free_segments.append(_free_segment(cursor, window.end))
    return free_segments


def _free_segment(start: datetime, end: datetime) -> Segment:
    return Segment(
        segment_id=None,
        interval=Interval(start=start, end=end),
        status=SegmentStatus.FREE,
    )


class AvailabilityService:
    """Loads active reservations for a room and renders its timeline."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def resolve_window(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> Interval:
        """Fill missing bounds: ``start`` defaults to now, ``end`` to start plus the default span."""
        span = timedelta(hours=self._settings.availability_default_window_hours)
        resolved_start = start or now or datetime.now(timezone.utc).replace(microsecond=0)
        return Interval(start=resolved_start, end=end or resolved_start + span)

    def _load(self, room_id: str, window: Interval) -> list[Reservation]:
        if self._repository.get_room(room_id) is None:
            raise RoomNotFoundError(f"room_id {room_id} not found")
        return self._repository.list_active_reservations(room_id=room_id, window=window)

    def get_room_availability(self, room_id: str, window: Interval) -> list[Segment]:
        reservations = self._load(room_id, window)
        segments = compute_availability(room_id, window, reservations)
        logger.info(
            "Room availability served | room_id=%s | segments=%s",
            room_id,
            len(segments),
        )
        return segments

    def get_free_slots(self, room_id: str, window: Interval) -> list[Segment]:
        reservations = self._load(room_id, window)
        return compute_free_slots(window, reservations)

    def check_rooms(
        self,
        window: Interval,
        site_id: Optional[str] = None,
    ) -> list[RoomAvailability]:
        """Availability of every room (active or not) for the same window."""
        rooms = self._repository.list_rooms(site_id=site_id)
        reservations_by_room = self._repository.list_active_reservations_by_room(
            window=window,
            room_ids=[room.room_id for room in rooms],
        )
        results = check_rooms_availability(window, rooms, reservations_by_room)
        logger.info(
            "Room availability check | rooms=%s | available=%s",
            len(results),
            sum(1 for item in results if item.is_available),
        )
        return results
