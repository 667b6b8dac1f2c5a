from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from roombook.domain.constraints import InvalidArgument, InvalidInterval
from roombook.domain.models import Interval, Reservation, ReservationStatus, SegmentStatus
from roombook.repository.data_repository import DataRepository
from roombook.services.availability_service import (
    AvailabilityService,
    RoomNotFoundError,
    compute_availability,
    compute_free_slots,
)
from roombook.utils.config import get_settings


BASE = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _at(minutes: int) -> datetime:
    return BASE + timedelta(minutes=minutes)


def _interval(start: int, end: int) -> Interval:
    return Interval(start=_at(start), end=_at(end))


def _reservation(
    reservation_id: str,
    start: int,
    end: int,
    status: ReservationStatus = ReservationStatus.CONFIRMED,
) -> Reservation:
    return Reservation(
        reservation_id=reservation_id,
        room_id="room-1",
        interval=_interval(start, end),
        status=status,
        title=f"Meeting {reservation_id}",
    )


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, seed_demo_data=False)


# --- compute_availability ---

def test_reservation_crossing_window_start_is_clipped() -> None:
    segments = compute_availability("room-1", _interval(0, 100), [_reservation("r1", -50, 50)])

    assert len(segments) == 1
    segment = segments[0]
    assert segment.interval == _interval(0, 50)
    assert segment.status is SegmentStatus.BUSY
    assert segment.to_dict()["start"] == _interval(0, 100).start_ms


def test_reservation_crossing_window_end_is_clipped() -> None:
    segments = compute_availability("room-1", _interval(0, 100), [_reservation("r1", 80, 140)])
    assert segments[0].interval == _interval(80, 100)


def test_segments_are_sorted_by_start() -> None:
    existing = [
        _reservation("late", 60, 70),
        _reservation("early", 10, 20),
        _reservation("middle", 30, 40),
    ]
    segments = compute_availability("room-1", _interval(0, 100), existing)
    assert [segment.segment_id for segment in segments] == ["early", "middle", "late"]


def test_equal_clipped_starts_keep_input_order() -> None:
    existing = [_reservation("first", -20, 10), _reservation("second", -10, 30)]
    segments = compute_availability("room-1", _interval(0, 100), existing)
    assert [segment.segment_id for segment in segments] == ["first", "second"]


def test_pending_reservation_maps_to_pending_segment() -> None:
    segments = compute_availability(
        "room-1",
        _interval(0, 100),
        [_reservation("hold", 10, 20, ReservationStatus.PENDING)],
    )
    assert segments[0].status is SegmentStatus.PENDING
    assert segments[0].title == "Meeting hold"


def test_reservations_outside_or_adjacent_to_window_are_ignored() -> None:
    existing = [_reservation("before", -30, 0), _reservation("after", 100, 130)]
    assert compute_availability("room-1", _interval(0, 100), existing) == []


def test_overlapping_reservations_are_not_merged() -> None:
    existing = [_reservation("a", 10, 40), _reservation("b", 20, 50)]
    segments = compute_availability("room-1", _interval(0, 100), existing)
    assert [segment.segment_id for segment in segments] == ["a", "b"]


def test_inactive_status_reaching_engine_raises() -> None:
    with pytest.raises(InvalidArgument):
        compute_availability(
            "room-1",
            _interval(0, 100),
            [_reservation("gone", 10, 20, ReservationStatus.CANCELLED)],
        )


def test_invalid_window_raises() -> None:
    with pytest.raises(InvalidInterval):
        compute_availability("room-1", None, [])  # type: ignore[arg-type]


# --- compute_free_slots ---

def test_free_slots_are_gaps_between_occupied_intervals() -> None:
    existing = [
        _reservation("a", 10, 20),
        _reservation("b", 15, 30),
        _reservation("c", 30, 40),
        _reservation("d", 90, 120),
    ]
    slots = compute_free_slots(_interval(0, 100), existing)

    assert [slot.interval for slot in slots] == [_interval(0, 10), _interval(40, 90)]
    assert all(slot.status is SegmentStatus.FREE for slot in slots)


def test_free_slots_of_empty_room_is_whole_window() -> None:
    slots = compute_free_slots(_interval(0, 100), [])
    assert [slot.interval for slot in slots] == [_interval(0, 100)]


def test_fully_booked_window_has_no_free_slots() -> None:
    assert compute_free_slots(_interval(0, 100), [_reservation("all", -10, 110)]) == []


# --- AvailabilityService ---

def test_service_excludes_inactive_reservations(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "availability_service.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    room = repository.create_room("Salle Alpha", 6, site_id="site-paris")

    for reservation_id, start, end, status in [
        ("kept", 10, 20, ReservationStatus.CONFIRMED),
        ("held", 30, 45, ReservationStatus.PENDING),
        ("dropped", 50, 60, ReservationStatus.CANCELLED),
        ("refused", 60, 70, ReservationStatus.REJECTED),
        ("stale", 70, 80, ReservationStatus.EXPIRED),
    ]:
        repository.insert_reservation(
            replace(_reservation(reservation_id, start, end, status), room_id=room.room_id)
        )

    service = AvailabilityService(repository=repository, settings=settings)
    segments = service.get_room_availability(room.room_id, _interval(0, 100))

    assert [(segment.segment_id, segment.status) for segment in segments] == [
        ("kept", SegmentStatus.BUSY),
        ("held", SegmentStatus.PENDING),
    ]
    free = service.get_free_slots(room.room_id, _interval(0, 100))
    assert [slot.interval for slot in free] == [
        _interval(0, 10),
        _interval(20, 30),
        _interval(45, 100),
    ]


def test_service_unknown_room_raises(tmp_path) -> None:
    settings = _build_test_settings(tmp_path, "availability_unknown.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    service = AvailabilityService(repository=repository, settings=settings)

    with pytest.raises(RoomNotFoundError):
        service.get_room_availability("missing", _interval(0, 60))


def test_resolve_window_fills_missing_bound(tmp_path) -> None:
    settings = replace(
        _build_test_settings(tmp_path, "availability_window.db"),
        availability_default_window_hours=6,
    )
    service = AvailabilityService(repository=DataRepository(settings), settings=settings)

    assert service.resolve_window(_at(0), None) == Interval(start=_at(0), end=_at(360))
    assert service.resolve_window(None, _at(360), now=_at(60)) == Interval(start=_at(60), end=_at(360))
    assert service.resolve_window(None, None, now=_at(0)) == Interval(start=_at(0), end=_at(360))
    assert service.resolve_window(None, None).duration == timedelta(hours=6)
    with pytest.raises(InvalidInterval):
        service.resolve_window(_at(10), _at(0))
    with pytest.raises(InvalidInterval):
        service.resolve_window(None, _at(30), now=_at(60))
