from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from roombook.domain.constraints import InvalidInterval
from roombook.domain.models import Interval, Reservation, ReservationStatus, Room
from roombook.repository.data_repository import DataRepository
from roombook.services.report_service import OccupancyReportService, build_occupancy_report
from roombook.utils.config import get_settings


BASE = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _interval(start: int, end: int) -> Interval:
    return Interval(start=BASE + timedelta(minutes=start), end=BASE + timedelta(minutes=end))


def _reservation(
    reservation_id: str,
    room_id: str,
    start: int,
    end: int,
    status: ReservationStatus = ReservationStatus.CONFIRMED,
) -> Reservation:
    return Reservation(
        reservation_id=reservation_id,
        room_id=room_id,
        interval=_interval(start, end),
        status=status,
        title=f"Meeting {reservation_id}",
    )


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, seed_demo_data=False)


def test_overlapping_reservations_are_counted_once():
    rooms = [
        Room(room_id="a", name="Salle A", capacity=6),
        Room(room_id="b", name="Salle B", capacity=8),
        Room(room_id="c", name="Salle C", capacity=10),
    ]
    reservations = {
        "a": [_reservation("a1", "a", 10, 30), _reservation("a2", "a", 20, 40)],
        "c": [_reservation("c1", "c", -10, 10)],
    }

    report = build_occupancy_report(_interval(0, 100), rooms, reservations)

    assert [row.room_id for row in report] == ["a", "b", "c"]
    by_room = {row.room_id: row for row in report}
    assert by_room["a"].reservation_count == 2
    assert by_room["a"].booked_minutes == 30.0
    assert by_room["a"].occupancy_rate == 0.3
    assert by_room["b"].reservation_count == 0
    assert by_room["b"].booked_minutes == 0.0
    assert by_room["b"].occupancy_rate == 0.0
    assert by_room["c"].booked_minutes == 10.0
    assert by_room["c"].room_name == "Salle C"


def test_nested_reservation_adds_no_time():
    rooms = [Room(room_id="a", name="Salle A", capacity=6)]
    reservations = {"a": [_reservation("outer", "a", 0, 60), _reservation("inner", "a", 10, 20)]}

    row = build_occupancy_report(_interval(0, 60), rooms, reservations)[0]

    assert row.booked_minutes == 60.0
    assert row.occupancy_rate == 1.0


def test_reservations_outside_window_are_ignored():
    rooms = [Room(room_id="a", name="Salle A", capacity=6)]
    reservations = {"a": [_reservation("before", "a", -30, 0), _reservation("after", "a", 60, 90)]}

    row = build_occupancy_report(_interval(0, 60), rooms, reservations)[0]

    assert row.reservation_count == 0
    assert row.booked_minutes == 0.0


def test_invalid_window_raises():
    with pytest.raises(InvalidInterval):
        build_occupancy_report(None, [], {})  # type: ignore[arg-type]


def test_service_reports_only_active_reservations(tmp_path):
    settings = _build_test_settings(tmp_path, "occupancy_service.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    paris = repository.create_room("Salle Paris", 6, site_id="site-paris", room_id="paris")
    repository.create_room("Salle Lyon", 6, site_id="site-lyon", room_id="lyon")
    repository.insert_reservation(_reservation("kept", paris.room_id, 0, 15))
    repository.insert_reservation(_reservation("held", paris.room_id, 15, 30, ReservationStatus.PENDING))
    repository.insert_reservation(
        _reservation("dropped", paris.room_id, 30, 60, ReservationStatus.CANCELLED)
    )
    repository.insert_reservation(_reservation("elsewhere", "lyon", 0, 60))

    service = OccupancyReportService(repository=repository, settings=settings)
    report = service.occupancy(_interval(0, 60), site_id="site-paris")

    assert len(report) == 1
    assert report[0].room_id == "paris"
    assert report[0].reservation_count == 2
    assert report[0].booked_minutes == 30.0
    assert report[0].occupancy_rate == 0.5
