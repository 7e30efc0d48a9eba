"""
Booking Store accessor over the ``bookings`` table.

Each call opens its own session: the engine never gets a transaction that
spans more than one record.
"""

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from shared.domain import Booking, BookingStatus
from shared.errors import StoreError

from .models import BookingRow


def row_to_booking(row: BookingRow) -> Booking:
    return Booking(
        id=row.id,
        student_id=row.student_id,
        lesson_id=row.lesson_id,
        availability_id=row.availability_id,
        status=BookingStatus(row.status),
        number_of_reschedules=row.number_of_reschedules or 0,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def booking_to_row(booking: Booking) -> BookingRow:
    return BookingRow(
        id=booking.id,
        student_id=booking.student_id,
        lesson_id=booking.lesson_id,
        availability_id=booking.availability_id,
        status=booking.status.value,
        number_of_reschedules=booking.number_of_reschedules,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


class BookingStore(Protocol):
    async def get(self, booking_id: str) -> Booking | None: ...

    async def put(self, booking: Booking) -> None: ...


class SqlBookingStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def get(self, booking_id: str) -> Booking | None:
        try:
            async with self._session_factory() as db:
                row = await db.get(BookingRow, booking_id)
        except SQLAlchemyError as e:
            raise StoreError(f"read booking {booking_id}: {e}") from e
        return row_to_booking(row) if row else None

    async def put(self, booking: Booking) -> None:
        """Full upsert keyed on the booking id."""
        try:
            async with self._session_factory() as db:
                await db.merge(booking_to_row(booking))
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"write booking {booking.id}: {e}") from e

    async def list_for_student(self, student_id: str) -> list[Booking]:
        try:
            async with self._session_factory() as db:
                res = await db.execute(
                    select(BookingRow)
                    .where(BookingRow.student_id == student_id)
                    .order_by(BookingRow.created_at)
                )
                rows = res.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"list bookings for {student_id}: {e}") from e
        return [row_to_booking(r) for r in rows]
