"""Occupancy reporting over a time window."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from roombook.domain.models import Interval, Reservation, Room, RoomOccupancy
from roombook.repository.data_repository import DataRepository
from roombook.services.conflict_service import require_interval
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger


logger = get_logger(__name__)

_MS_PER_MINUTE = 60_000


def _build_reservation_frame(
    window: Interval,
    reservations_by_room: Mapping[str, Sequence[Reservation]],
) -> pd.DataFrame:
    """Clip reservations to the window and keep the visible ones."""
    frame = pd.DataFrame(
        [
            {
                "room_id": reservation.room_id,
                "start_ms": reservation.interval.start_ms,
                "end_ms": reservation.interval.end_ms,
            }
            for reservations in reservations_by_room.values()
            for reservation in reservations
        ],
        columns=["room_id", "start_ms", "end_ms"],
    )
    if frame.empty:
        return frame

    frame["start_ms"] = np.maximum(frame["start_ms"].to_numpy(dtype=np.int64), window.start_ms)
    frame["end_ms"] = np.minimum(frame["end_ms"].to_numpy(dtype=np.int64), window.end_ms)
    return frame[frame["start_ms"] < frame["end_ms"]].copy()


def _covered_milliseconds(frame: pd.DataFrame) -> pd.Series:
    """Per-room length of the union of intervals; overlaps count once.

    With rows sorted by start, each row only adds the part that lies past the
    furthest end seen so far in its room.
    """
    frame = frame.sort_values(by=["room_id", "start_ms", "end_ms"])
    furthest_previous_end = frame.groupby("room_id", sort=False)["end_ms"].transform(
        lambda series: series.cummax().shift(1)
    )
    covered_from = np.maximum(
        frame["start_ms"].to_numpy(dtype=np.float64),
        furthest_previous_end.fillna(frame["start_ms"]).to_numpy(dtype=np.float64),
    )
    frame["covered_ms"] = np.clip(frame["end_ms"].to_numpy(dtype=np.float64) - covered_from, 0.0, None)
    return frame.groupby("room_id")["covered_ms"].sum()


def build_occupancy_report(
    window: Interval,
    rooms: Sequence[Room],
    reservations_by_room: Mapping[str, Sequence[Reservation]],
) -> list[RoomOccupancy]:
    """Booked time and occupancy rate per room inside ``window``, in room order."""
    require_interval(window, "window")
    window_ms = float(window.end_ms - window.start_ms)

    frame = _build_reservation_frame(window, reservations_by_room)
    if frame.empty:
        counts: pd.Series = pd.Series(dtype=np.int64)
        covered: pd.Series = pd.Series(dtype=np.float64)
    else:
        counts = frame.groupby("room_id").size()
        covered = _covered_milliseconds(frame)

    report: list[RoomOccupancy] = []
    for room in rooms:
        covered_ms = float(covered.get(room.room_id, 0.0))
        report.append(
            RoomOccupancy(
                room_id=room.room_id,
                room_name=room.name,
                reservation_count=int(counts.get(room.room_id, 0)),
                booked_minutes=round(covered_ms / _MS_PER_MINUTE, 2),
                occupancy_rate=round(min(1.0, covered_ms / window_ms), 4),
            )
        )
    return report


class OccupancyReportService:
    """Loads the catalog and active reservations, then summarizes occupancy."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def occupancy(self, window: Interval, site_id: Optional[str] = None) -> list[RoomOccupancy]:
        rooms = self._repository.list_rooms(site_id=site_id)
        reservations_by_room = self._repository.list_active_reservations_by_room(
            window=window,
            room_ids=[room.room_id for room in rooms],
        )
        report = build_occupancy_report(window, rooms, reservations_by_room)
        logger.info(
            "Occupancy report built | rooms=%s | window_start=%s | window_end=%s",
            len(report),
            window.start.isoformat(),
            window.end.isoformat(),
        )
        return report
