"""Interval-overlap conflict detection for room reservations.

Every function here is pure: it reads the reservations it is handed and never
touches storage. Callers are expected to pass only active (``PENDING`` or
``CONFIRMED``) reservations; the repository applies that filter.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from roombook.domain.constraints import InvalidInterval
from roombook.domain.models import Interval, Reservation, Room, RoomAvailability
from roombook.utils.logger import get_logger


logger = get_logger(__name__)


def require_interval(value: object, name: str = "interval") -> Interval:
    if not isinstance(value, Interval):
        raise InvalidInterval(f"{name} must be an Interval, got {type(value).__name__}")
    return value


def intervals_overlap(first: Interval, second: Interval) -> bool:
    """Strict half-open overlap; intervals sharing only a boundary do not overlap."""
    return first.start < second.end and second.start < first.end


def find_conflict(
    candidate: Interval,
    existing: Sequence[Reservation],
    *,
    exclude_reservation_id: Optional[str] = None,
) -> Optional[Reservation]:
    """Return the first reservation overlapping ``candidate``, or None.

    Reservations are scanned in the order given. When several overlap, which
    one is reported is not part of the contract; sort beforehand if a specific
    one is required. ``exclude_reservation_id`` skips the reservation being
    rescheduled so it never conflicts with itself.
    """
    require_interval(candidate, "candidate")
    for reservation in existing:
        if exclude_reservation_id is not None and reservation.reservation_id == exclude_reservation_id:
            continue
        if intervals_overlap(candidate, reservation.interval):
            logger.debug(
                "Conflict found | room_id=%s | reservation_id=%s",
                reservation.room_id,
                reservation.reservation_id,
            )
            return reservation
    return None


def has_conflict(candidate: Interval, existing: Sequence[Reservation]) -> bool:
    return find_conflict(candidate, existing) is not None


def check_rooms_availability(
    window: Interval,
    rooms: Sequence[Room],
    reservations_by_room: Mapping[str, Sequence[Reservation]],
) -> list[RoomAvailability]:
    """Report, for every room in input order, whether ``window`` is free."""
    require_interval(window, "window")
    results: list[RoomAvailability] = []
    for room in rooms:
        conflict = find_conflict(window, reservations_by_room.get(room.room_id, ()))
        results.append(
            RoomAvailability(
                room=room,
                is_available=conflict is None,
                conflicting_reservation=conflict,
            )
        )
    return results
