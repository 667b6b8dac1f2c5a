from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from roombook.domain.constraints import InvalidInterval
from roombook.domain.models import Interval, Reservation, ReservationStatus, Room
from roombook.services.conflict_service import (
    check_rooms_availability,
    find_conflict,
    has_conflict,
    intervals_overlap,
)


BASE = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _interval(start: int, end: int) -> Interval:
    return Interval(start=BASE + timedelta(minutes=start), end=BASE + timedelta(minutes=end))


def _reservation(
    reservation_id: str,
    start: int,
    end: int,
    *,
    room_id: str = "room-1",
    status: ReservationStatus = ReservationStatus.CONFIRMED,
) -> Reservation:
    return Reservation(
        reservation_id=reservation_id,
        room_id=room_id,
        interval=_interval(start, end),
        status=status,
        title=f"Meeting {reservation_id}",
    )


_INTERVAL_PAIRS = [
    ((10, 20), (20, 30)),
    ((10, 20), (0, 10)),
    ((10, 20), (15, 25)),
    ((5, 25), (10, 20)),
    ((0, 5), (40, 50)),
    ((10, 20), (10, 20)),
]


@pytest.mark.parametrize(("first", "second"), _INTERVAL_PAIRS)
def test_overlap_is_symmetric(first, second) -> None:
    a = _interval(*first)
    b = _interval(*second)
    assert intervals_overlap(a, b) == intervals_overlap(b, a)
    assert a.overlaps(b) == intervals_overlap(a, b)


def test_empty_store_never_conflicts() -> None:
    assert find_conflict(_interval(0, 60), []) is None
    assert has_conflict(_interval(0, 60), []) is False


def test_reservation_starting_at_candidate_end_is_not_a_conflict() -> None:
    assert find_conflict(_interval(10, 20), [_reservation("a", 20, 30)]) is None


def test_reservation_ending_at_candidate_start_is_not_a_conflict() -> None:
    assert find_conflict(_interval(10, 20), [_reservation("a", 0, 10)]) is None


def test_candidate_containing_reservation_conflicts() -> None:
    existing = _reservation("inner", 10, 20)
    assert find_conflict(_interval(5, 25), [existing]) == existing


def test_candidate_inside_reservation_conflicts() -> None:
    existing = _reservation("outer", 5, 25)
    assert find_conflict(_interval(10, 20), [existing]) == existing


def test_partial_overlap_conflicts() -> None:
    existing = _reservation("late", 15, 45)
    assert find_conflict(_interval(0, 20), [existing]) == existing


def test_first_overlap_in_scan_order_is_reported() -> None:
    later = _reservation("later", 40, 50)
    earlier = _reservation("earlier", 0, 15)
    candidate = _interval(10, 45)
    assert find_conflict(candidate, [later, earlier]) == later
    assert find_conflict(candidate, [earlier, later]) == earlier


def test_excluded_reservation_does_not_conflict_with_itself() -> None:
    current = _reservation("self", 10, 20)
    assert find_conflict(_interval(15, 25), [current], exclude_reservation_id="self") is None


def test_exclusion_still_reports_other_overlaps() -> None:
    current = _reservation("self", 10, 20)
    other = _reservation("other", 20, 30)
    result = find_conflict(_interval(15, 25), [current, other], exclude_reservation_id="self")
    assert result == other


def test_non_interval_candidate_raises() -> None:
    with pytest.raises(InvalidInterval):
        find_conflict((0, 10), [])  # type: ignore[arg-type]


def test_check_rooms_availability_preserves_room_order() -> None:
    rooms = [
        Room(room_id="room-b", name="Beta", capacity=6),
        Room(room_id="room-a", name="Alpha", capacity=4),
        Room(room_id="room-c", name="Gamma", capacity=8),
    ]
    busy = _reservation("busy", 0, 30, room_id="room-a")
    results = check_rooms_availability(
        _interval(10, 20),
        rooms,
        {"room-a": [busy], "room-b": [_reservation("adjacent", 20, 40, room_id="room-b")]},
    )

    assert [item.room.room_id for item in results] == ["room-b", "room-a", "room-c"]
    assert [item.is_available for item in results] == [True, False, True]
    assert results[1].conflicting_reservation == busy
    assert results[2].conflicting_reservation is None
