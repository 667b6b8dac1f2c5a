"""Booking lifecycle: create, reschedule and cancel reservations.

Conflict checks run inside the same write transaction as the insert/update,
so two concurrent requests for overlapping slots cannot both succeed.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from roombook.domain.constraints import InvalidArgument
from roombook.domain.models import Interval, Reservation, ReservationStatus
from roombook.repository.data_repository import DataRepository, new_reservation_id
from roombook.services.availability_service import RoomNotFoundError
from roombook.services.conflict_service import find_conflict, require_interval
from roombook.utils.config import Settings, get_settings
from roombook.utils.logger import get_logger


logger = get_logger(__name__)


class BookingError(Exception):
    """Base exception for booking workflow failures."""


class ReservationNotFoundError(BookingError):
    """Raised when a reservation id does not exist."""


class BookingConflictError(BookingError):
    """Raised when the requested slot overlaps an active reservation."""

    def __init__(self, conflict: Reservation) -> None:
        super().__init__(
            f"room {conflict.room_id} is already reserved by {conflict.reservation_id}"
        )
        self.conflict = conflict


class BookingService:
    """Writes reservations while keeping each room free of overlaps."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def _validate_title(self, title: str) -> str:
        cleaned = title.strip()
        minimum = self._settings.booking_title_min_length
        maximum = self._settings.booking_title_max_length
        if not minimum <= len(cleaned) <= maximum:
            raise InvalidArgument(f"title must be between {minimum} and {maximum} characters")
        return cleaned

    def _default_status(self) -> ReservationStatus:
        try:
            return ReservationStatus(self._settings.booking_default_status)
        except ValueError as exc:
            raise InvalidArgument(
                f"unsupported default booking status {self._settings.booking_default_status!r}"
            ) from exc

    def find_conflict(
        self,
        room_id: str,
        interval: Interval,
        exclude_reservation_id: Optional[str] = None,
    ) -> Optional[Reservation]:
        """Read-time conflict lookup; advisory only, writes re-check."""
        require_interval(interval, "interval")
        existing = self._repository.list_active_reservations(room_id=room_id, window=interval)
        return find_conflict(interval, existing, exclude_reservation_id=exclude_reservation_id)

    def create_booking(
        self,
        *,
        room_id: str,
        interval: Interval,
        title: str,
        status: Optional[ReservationStatus] = None,
        recurrence_rule: Optional[str] = None,
    ) -> Reservation:
        require_interval(interval, "interval")
        resolved_status = status or self._default_status()
        if resolved_status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise InvalidArgument("new bookings must be PENDING or CONFIRMED")

        reservation = Reservation(
            reservation_id=new_reservation_id(),
            room_id=room_id,
            interval=interval,
            status=resolved_status,
            title=self._validate_title(title),
            recurrence_rule=recurrence_rule,
        )

        if self._repository.get_room(room_id) is None:
            raise RoomNotFoundError(f"room_id {room_id} not found")

        with self._repository.write_transaction() as conn:
            existing = self._repository.list_active_reservations(
                room_id=room_id,
                window=interval,
                conn=conn,
            )
            conflict = find_conflict(interval, existing)
            if conflict is not None:
                logger.info(
                    "Booking rejected | room_id=%s | conflict_id=%s",
                    room_id,
                    conflict.reservation_id,
                )
                raise BookingConflictError(conflict)
            self._repository.insert_reservation(reservation, conn=conn)

        logger.info(
            "Booking created | reservation_id=%s | room_id=%s | start=%s | end=%s",
            reservation.reservation_id,
            room_id,
            interval.start.isoformat(),
            interval.end.isoformat(),
        )
        return reservation

    def reschedule_booking(
        self,
        reservation_id: str,
        *,
        interval: Optional[Interval] = None,
        title: Optional[str] = None,
    ) -> Reservation:
        with self._repository.write_transaction() as conn:
            current = self._repository.get_reservation(reservation_id, conn=conn)
            if current is None:
                raise ReservationNotFoundError(f"reservation {reservation_id} not found")
            if not current.is_active:
                raise InvalidArgument(
                    f"reservation {reservation_id} is {current.status.value} and cannot be changed"
                )

            updated = current
            if title is not None:
                updated = replace(updated, title=self._validate_title(title))
            if interval is not None:
                require_interval(interval, "interval")
                existing = self._repository.list_active_reservations(
                    room_id=current.room_id,
                    window=interval,
                    conn=conn,
                )
                conflict = find_conflict(
                    interval,
                    existing,
                    exclude_reservation_id=reservation_id,
                )
                if conflict is not None:
                    raise BookingConflictError(conflict)
                updated = replace(updated, interval=interval)

            self._repository.update_reservation(updated, conn=conn)

        logger.info("Booking updated | reservation_id=%s", reservation_id)
        return updated

    def cancel_booking(self, reservation_id: str) -> Reservation:
        with self._repository.write_transaction() as conn:
            current = self._repository.get_reservation(reservation_id, conn=conn)
            if current is None:
                raise ReservationNotFoundError(f"reservation {reservation_id} not found")
            if current.status is ReservationStatus.CANCELLED:
                return current
            if not current.is_active:
                raise InvalidArgument(
                    f"reservation {reservation_id} is {current.status.value} and cannot be cancelled"
                )
            cancelled = replace(current, status=ReservationStatus.CANCELLED)
            self._repository.update_reservation(cancelled, conn=conn)

        logger.info("Booking cancelled | reservation_id=%s", reservation_id)
        return cancelled
