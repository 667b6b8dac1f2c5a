"""Domain models for room reservations, availability and suggestions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from roombook.domain.constraints import InvalidArgument, InvalidInterval


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


ACTIVE_RESERVATION_STATUSES = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.CONFIRMED}
)


class SegmentStatus(str, Enum):
    BUSY = "busy"
    PENDING = "pending"
    FREE = "free"


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.tzinfo.utcoffset(value) is not None


def _floor_ms(value: datetime) -> datetime:
    return value - timedelta(microseconds=value.microsecond % 1000)


def _ceil_ms(value: datetime) -> datetime:
    floored = _floor_ms(value)
    return floored if floored == value else floored + timedelta(milliseconds=1)


@dataclass(frozen=True)
class Interval:
    """Half-open ``[start, end)`` range between two timezone-aware instants.

    Bounds are widened to whole milliseconds: start is floored, end is ceiled.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise InvalidInterval("interval bounds must be datetime instances")
        if not _is_aware(self.start) or not _is_aware(self.end):
            raise InvalidInterval("interval bounds must be timezone-aware")
        object.__setattr__(self, "start", _floor_ms(self.start))
        object.__setattr__(self, "end", _ceil_ms(self.end))
        if self.start >= self.end:
            raise InvalidInterval(
                f"interval start {self.start.isoformat()} must be before end {self.end.isoformat()}"
            )

    @classmethod
    def from_epoch_ms(cls, start_ms: int, end_ms: int) -> "Interval":
        return cls(
            start=_EPOCH + timedelta(milliseconds=start_ms),
            end=_EPOCH + timedelta(milliseconds=end_ms),
        )

    @property
    def start_ms(self) -> int:
        return _to_epoch_ms(self.start)

    @property
    def end_ms(self) -> int:
        return _to_epoch_ms(self.end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def clip_to(self, window: "Interval") -> "Interval":
        """Return the visible part of this interval; caller guarantees overlap."""
        return Interval(start=max(self.start, window.start), end=min(self.end, window.end))


def _to_epoch_ms(value: datetime) -> int:
    return (value - _EPOCH) // timedelta(milliseconds=1)


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    room_id: str
    interval: Interval
    status: ReservationStatus
    title: str
    recurrence_rule: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_RESERVATION_STATUSES


@dataclass(frozen=True)
class Room:
    room_id: str
    name: str
    capacity: int
    site_id: Optional[str] = None
    equipment_tags: frozenset[str] = field(default_factory=frozenset)
    is_active: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.capacity, bool) or not isinstance(self.capacity, int) or self.capacity <= 0:
            raise InvalidArgument(f"room {self.room_id} capacity must be a positive integer")


@dataclass(frozen=True)
class Segment:
    segment_id: Optional[str]
    interval: Interval
    status: SegmentStatus
    title: Optional[str] = None

    def to_dict(self) -> dict[str, str | int | None]:
        return {
            "id": self.segment_id,
            "start": self.interval.start_ms,
            "end": self.interval.end_ms,
            "status": self.status.value,
            "title": self.title,
        }


@dataclass(frozen=True)
class Suggestion:
    room: Room
    match_score: int
    available: bool = True


@dataclass(frozen=True)
class RoomAvailability:
    room: Room
    is_available: bool
    conflicting_reservation: Optional[Reservation] = None


@dataclass(frozen=True)
class RoomOccupancy:
    room_id: str
    room_name: str
    reservation_count: int
    booked_minutes: float
    occupancy_rate: float
