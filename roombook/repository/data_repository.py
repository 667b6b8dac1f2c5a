"""Repository layer responsible for all database access.

This is the only place that knows which reservation statuses are inert: every
reservation query here returns ``PENDING``/``CONFIRMED`` rows only, so the
scheduling engine never sees cancelled, rejected or expired bookings.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence
from uuid import uuid4

from roombook.domain.models import (
    ACTIVE_RESERVATION_STATUSES,
    Interval,
    Reservation,
    ReservationStatus,
    Room,
)
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger


logger = get_logger(__name__)

_ACTIVE_STATUS_VALUES = tuple(sorted(status.value for status in ACTIVE_RESERVATION_STATUSES))
_ACTIVE_STATUS_PLACEHOLDERS = ",".join("?" for _ in _ACTIVE_STATUS_VALUES)

_DEMO_ROOMS = [
    ("room-alpha", "Salle Alpha", 4, "site-paris", ("WiFi",)),
    ("room-beta", "Salle Beta", 6, "site-paris", ("WiFi", "Écran 4K")),
    ("room-gamma", "Salle Gamma", 8, "site-paris", ("WiFi", "Tableau blanc")),
    ("room-delta", "Salle Delta", 12, "site-paris", ("WiFi", "Écran 4K", "Visioconférence")),
    ("room-epsilon", "Salle Epsilon", 20, "site-paris", ("Monitor", "Projecteur")),
    ("room-zeta", "Salle Zeta", 6, "site-lyon", ("WiFi",)),
    ("room-eta", "Salle Eta", 10, "site-lyon", ("WiFi", "Monitor")),
    ("room-theta", "Salle Theta", 30, "site-lyon", ("WiFi", "Écran", "Sonorisation")),
]


def new_reservation_id() -> str:
    return uuid4().hex


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path, timeout=10.0)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _session(self, conn: Optional[sqlite3.Connection] = None) -> Iterator[sqlite3.Connection]:
        """Reuse a caller's transaction connection, or open a short-lived one."""
        if conn is not None:
            yield conn
            return
        connection = self._connect()
        try:
            with connection:
                yield connection
        finally:
            connection.close()

    @contextmanager
    def write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the database write lock for a read-check-write sequence.

        ``BEGIN IMMEDIATE`` takes the reserved lock up front, so a conflict
        re-check and the insert that depends on it cannot interleave with
        another writer.
        """
        connection = self._connect()
        connection.isolation_level = None
        try:
            connection.execute("BEGIN IMMEDIATE;")
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._session() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        site_id TEXT,
                        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS RoomEquipment (
                        room_id TEXT NOT NULL,
                        tag TEXT NOT NULL,
                        PRIMARY KEY (room_id, tag),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE CASCADE
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Reservations (
                        id TEXT PRIMARY KEY,
                        room_id TEXT NOT NULL,
                        title TEXT NOT NULL,
                        start_ms INTEGER NOT NULL,
                        end_ms INTEGER NOT NULL,
                        status TEXT NOT NULL DEFAULT 'CONFIRMED'
                            CHECK (status IN ('PENDING','CONFIRMED','CANCELLED','REJECTED','EXPIRED')),
                        recurrence_rule TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (start_ms < end_ms),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_reservations_room_window
                    ON Reservations(room_id, start_ms, end_ms);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_reservations_status
                    ON Reservations(status);
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Insert the demo room catalog only when the Rooms table is empty."""
        try:
            with self._session() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Room catalog already present; skipping seed")
                    return

                cursor.executemany(
                    """
                    INSERT INTO Rooms (id, name, capacity, site_id)
                    VALUES (?, ?, ?, ?);
                    """,
                    [(room_id, name, capacity, site_id) for room_id, name, capacity, site_id, _ in _DEMO_ROOMS],
                )
                cursor.executemany(
                    "INSERT INTO RoomEquipment (room_id, tag) VALUES (?, ?);",
                    [(room_id, tag) for room_id, _, _, _, tags in _DEMO_ROOMS for tag in tags],
                )
            logger.info("Demo seed completed with %s rooms", len(_DEMO_ROOMS))
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    # --- Rooms -------------------------------------------------------------

    def create_room(
        self,
        name: str,
        capacity: int,
        *,
        site_id: Optional[str] = None,
        equipment_tags: Iterable[str] = (),
        is_active: bool = True,
        room_id: Optional[str] = None,
    ) -> Room:
        room = Room(
            room_id=room_id or uuid4().hex,
            name=name,
            capacity=capacity,
            site_id=site_id,
            equipment_tags=frozenset(equipment_tags),
            is_active=is_active,
        )
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO Rooms (id, name, capacity, site_id, is_active)
                VALUES (?, ?, ?, ?, ?);
                """,
                (room.room_id, room.name, room.capacity, room.site_id, int(room.is_active)),
            )
            conn.executemany(
                "INSERT INTO RoomEquipment (room_id, tag) VALUES (?, ?);",
                [(room.room_id, tag) for tag in sorted(room.equipment_tags)],
            )
        return room

    def _equipment_by_room(
        self,
        conn: sqlite3.Connection,
        room_ids: Sequence[str],
    ) -> dict[str, set[str]]:
        tags: dict[str, set[str]] = {room_id: set() for room_id in room_ids}
        if not room_ids:
            return tags
        placeholders = ",".join("?" for _ in room_ids)
        cursor = conn.execute(
            f"SELECT room_id, tag FROM RoomEquipment WHERE room_id IN ({placeholders});",
            tuple(room_ids),
        )
        for row in cursor.fetchall():
            tags[str(row["room_id"])].add(str(row["tag"]))
        return tags

    @staticmethod
    def _row_to_room(row: sqlite3.Row, tags: set[str]) -> Room:
        return Room(
            room_id=str(row["id"]),
            name=str(row["name"]),
            capacity=int(row["capacity"]),
            site_id=row["site_id"],
            equipment_tags=frozenset(tags),
            is_active=bool(row["is_active"]),
        )

    def get_room(self, room_id: str) -> Optional[Room]:
        with self._session() as conn:
            row = conn.execute(
                "SELECT id, name, capacity, site_id, is_active FROM Rooms WHERE id = ?;",
                (room_id,),
            ).fetchone()
            if row is None:
                return None
            tags = self._equipment_by_room(conn, [room_id])
            return self._row_to_room(row, tags[room_id])

    def list_rooms(
        self,
        *,
        active_only: bool = False,
        site_id: Optional[str] = None,
    ) -> list[Room]:
        """Return the room catalog ordered by capacity, then id."""
        clauses: list[str] = []
        params: list[object] = []
        if active_only:
            clauses.append("is_active = 1")
        if site_id is not None:
            clauses.append("site_id = ?")
            params.append(site_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT id, name, capacity, site_id, is_active
                FROM Rooms
                {where}
                ORDER BY capacity ASC, id ASC;
                """,
                tuple(params),
            ).fetchall()
            tags = self._equipment_by_room(conn, [str(row["id"]) for row in rows])
            return [self._row_to_room(row, tags[str(row["id"])]) for row in rows]

    # --- Reservations ------------------------------------------------------

    @staticmethod
    def _row_to_reservation(row: sqlite3.Row) -> Reservation:
        return Reservation(
            reservation_id=str(row["id"]),
            room_id=str(row["room_id"]),
            interval=Interval.from_epoch_ms(int(row["start_ms"]), int(row["end_ms"])),
            status=ReservationStatus(str(row["status"])),
            title=str(row["title"]),
            recurrence_rule=row["recurrence_rule"],
        )

    def list_active_reservations(
        self,
        room_id: str,
        window: Interval,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Reservation]:
        """Active reservations of one room touching ``window``, by start time."""
        with self._session(conn) as session:
            rows = session.execute(
                f"""
                SELECT id, room_id, title, start_ms, end_ms, status, recurrence_rule
                FROM Reservations
                WHERE room_id = ?
                  AND start_ms < ?
                  AND end_ms > ?
                  AND status IN ({_ACTIVE_STATUS_PLACEHOLDERS})
                ORDER BY start_ms ASC, id ASC;
                """,
                (room_id, window.end_ms, window.start_ms, *_ACTIVE_STATUS_VALUES),
            ).fetchall()
            return [self._row_to_reservation(row) for row in rows]

    def list_active_reservations_by_room(
        self,
        window: Interval,
        room_ids: Optional[Sequence[str]] = None,
    ) -> dict[str, list[Reservation]]:
        """Active reservations touching ``window`` grouped by room.

        Every requested room id is present in the result, possibly with an
        empty list.
        """
        params: list[object] = [window.end_ms, window.start_ms, *_ACTIVE_STATUS_VALUES]
        room_clause = ""
        if room_ids is not None:
            if not room_ids:
                return {}
            room_clause = f"AND room_id IN ({','.join('?' for _ in room_ids)})"
            params.extend(room_ids)

        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT id, room_id, title, start_ms, end_ms, status, recurrence_rule
                FROM Reservations
                WHERE start_ms < ?
                  AND end_ms > ?
                  AND status IN ({_ACTIVE_STATUS_PLACEHOLDERS})
                  {room_clause}
                ORDER BY room_id ASC, start_ms ASC, id ASC;
                """,
                tuple(params),
            ).fetchall()

        grouped: dict[str, list[Reservation]] = {room_id: [] for room_id in room_ids or ()}
        for row in rows:
            reservation = self._row_to_reservation(row)
            grouped.setdefault(reservation.room_id, []).append(reservation)
        return grouped

    def get_reservation(
        self,
        reservation_id: str,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Reservation]:
        """Fetch one reservation regardless of status."""
        with self._session(conn) as session:
            row = session.execute(
                """
                SELECT id, room_id, title, start_ms, end_ms, status, recurrence_rule
                FROM Reservations
                WHERE id = ?;
                """,
                (reservation_id,),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_reservation(row)

    def insert_reservation(
        self,
        reservation: Reservation,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        with self._session(conn) as session:
            session.execute(
                """
                INSERT INTO Reservations (
                    id,
                    room_id,
                    title,
                    start_ms,
                    end_ms,
                    status,
                    recurrence_rule
                )
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    reservation.reservation_id,
                    reservation.room_id,
                    reservation.title,
                    reservation.interval.start_ms,
                    reservation.interval.end_ms,
                    reservation.status.value,
                    reservation.recurrence_rule,
                ),
            )

    def update_reservation(
        self,
        reservation: Reservation,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        with self._session(conn) as session:
            session.execute(
                """
                UPDATE Reservations
                SET title = ?,
                    start_ms = ?,
                    end_ms = ?,
                    status = ?,
                    recurrence_rule = ?
                WHERE id = ?;
                """,
                (
                    reservation.title,
                    reservation.interval.start_ms,
                    reservation.interval.end_ms,
                    reservation.status.value,
                    reservation.recurrence_rule,
                    reservation.reservation_id,
                ),
            )

    def count_reservations(self, status: Optional[ReservationStatus] = None) -> int:
        with self._session() as conn:
            if status is None:
                row = conn.execute("SELECT COUNT(*) AS count FROM Reservations;").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS count FROM Reservations WHERE status = ?;",
                    (status.value,),
                ).fetchone()
            return int(row["count"])
