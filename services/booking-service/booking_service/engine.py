"""
Reservation engine: create, reschedule, re-activate and skip bookings.

Every booking identity moves through a small state machine::

    NONE -> scheduled -> scheduled (rescheduled)
                      -> skipped   -> scheduled (re-activated)
                      -> completed (set by lesson completion, never left)

Writes always happen in the same order: release the old slot, book the new
slot, then write the booking record. A crash part way through can leave a
slot free that should be booked, but never two bookings holding slots with
no free alternative. Nothing is rolled back on failure.

Store exceptions never escape this module; every call returns a
``ReservationResult`` carrying an explicit ``Outcome``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from shared.domain import AvailabilitySlot, Booking, BookingStatus, booking_id_for
from shared.errors import NotFoundError, SlotConflictError, StoreError
from shared.selector import is_selectable
from shared.slot_store import AvailabilityStore

from .booking_store import BookingStore
from .policy import ReschedulePolicy

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    POLICY_VIOLATION = "PolicyViolation"
    STORE_ERROR = "StoreError"
    NO_OP_WARNING = "NoOpWarning"


class Outcome(str, Enum):
    CREATED = "CREATED"
    REACTIVATED = "REACTIVATED"
    RESCHEDULED = "RESCHEDULED"
    SKIPPED = "SKIPPED"
    NO_CHANGE = "NO_CHANGE"
    RESCHEDULE_LIMIT_REACHED = "RESCHEDULE_LIMIT_REACHED"
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    STORE_ERROR = "STORE_ERROR"

    @property
    def is_success(self) -> bool:
        return self in _SUCCESS

    @property
    def kind(self) -> ErrorKind | None:
        return _KINDS.get(self)


_SUCCESS = {
    Outcome.CREATED,
    Outcome.REACTIVATED,
    Outcome.RESCHEDULED,
    Outcome.SKIPPED,
    Outcome.NO_CHANGE,
}

_KINDS = {
    Outcome.NO_CHANGE: ErrorKind.NO_OP_WARNING,
    Outcome.RESCHEDULE_LIMIT_REACHED: ErrorKind.POLICY_VIOLATION,
    Outcome.SLOT_UNAVAILABLE: ErrorKind.POLICY_VIOLATION,
    Outcome.INVALID_TRANSITION: ErrorKind.POLICY_VIOLATION,
    Outcome.INVALID_REQUEST: ErrorKind.POLICY_VIOLATION,
    Outcome.NOT_FOUND: ErrorKind.NOT_FOUND,
    Outcome.STORE_ERROR: ErrorKind.STORE_ERROR,
}


@dataclass(frozen=True)
class ReservationResult:
    outcome: Outcome
    booking_id: str | None = None
    booking: Booking | None = None
    slot: AvailabilitySlot | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.outcome.is_success

    @property
    def status(self) -> str:
        """Coarse two-valued status exposed to existing callers."""
        return "SUCCESS" if self.is_success else "ERROR"


class ReservationEngine:
    def __init__(
        self,
        slots: AvailabilityStore,
        bookings: BookingStore,
        policy: ReschedulePolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._slots = slots
        self._bookings = bookings
        self.policy = policy or ReschedulePolicy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ---------- reserve ----------

    async def reserve(
        self,
        student_id: str,
        lesson_id: str,
        target_slot_id: str,
        current_slot_id: str | None = None,
    ) -> ReservationResult:
        """
        Book ``target_slot_id`` for (student, lesson), moving an existing
        booking if there is one.

        ``current_slot_id`` is the slot the caller believes the booking holds.
        It is only compared for logging; the stored booking is authoritative.
        """
        if not student_id or not lesson_id or not target_slot_id:
            return self._refuse(
                Outcome.INVALID_REQUEST,
                None,
                "studentId, lessonId and newSlotId are required to schedule",
            )

        booking_id = booking_id_for(student_id, lesson_id)

        try:
            existing = await self._bookings.get(booking_id)
        except StoreError as e:
            return self._store_failure(booking_id, "load booking", e)

        if existing and current_slot_id and current_slot_id != existing.availability_id:
            logger.warning(
                "booking %s: caller expected slot %s, stored slot is %s",
                booking_id, current_slot_id, existing.availability_id,
            )

        if existing is None:
            return await self._book(booking_id, student_id, lesson_id, target_slot_id, None)

        if existing.status == BookingStatus.SCHEDULED:
            if self.policy.is_no_op(existing, target_slot_id):
                logger.info("booking %s already holds slot %s; nothing to do", booking_id, target_slot_id)
                return ReservationResult(Outcome.NO_CHANGE, booking_id, booking=existing)

            if not self.policy.can_reschedule(existing):
                return self._refuse(
                    Outcome.RESCHEDULE_LIMIT_REACHED,
                    booking_id,
                    f"booking already rescheduled {existing.number_of_reschedules} "
                    f"of {self.policy.max_reschedules} times",
                    booking=existing,
                )

            return await self._reschedule(existing, target_slot_id)

        if existing.status in (BookingStatus.SKIPPED, BookingStatus.CANCELED):
            return await self._book(booking_id, student_id, lesson_id, target_slot_id, existing)

        return self._refuse(
            Outcome.INVALID_TRANSITION,
            booking_id,
            f"booking is {existing.status.value}; it cannot be scheduled again",
            booking=existing,
        )

    async def _book(
        self,
        booking_id: str,
        student_id: str,
        lesson_id: str,
        target_slot_id: str,
        existing: Booking | None,
    ) -> ReservationResult:
        """Create a booking, or re-activate ``existing`` in place."""
        step = "load target slot"
        try:
            target = await self._slots.get(target_slot_id)
            if target is None:
                return self._refuse(Outcome.NOT_FOUND, booking_id, f"slot {target_slot_id} does not exist")
            if not is_selectable(target):
                return self._refuse(Outcome.SLOT_UNAVAILABLE, booking_id, f"slot {target_slot_id} is already booked")

            step = "book target slot"
            await self._slots.set_booked(target_slot_id, True, expected=False)

            step = "write booking"
            now = self._clock()
            if existing is None:
                booking = Booking(
                    id=booking_id,
                    student_id=student_id,
                    lesson_id=lesson_id,
                    availability_id=target_slot_id,
                    status=BookingStatus.SCHEDULED,
                    number_of_reschedules=0,
                    created_at=now,
                    updated_at=now,
                )
                outcome = Outcome.CREATED
            else:
                booking = existing.model_copy(update={
                    "availability_id": target_slot_id,
                    "status": BookingStatus.SCHEDULED,
                    "updated_at": now,
                })
                outcome = Outcome.REACTIVATED
            await self._bookings.put(booking)
        except SlotConflictError:
            return self._refuse(Outcome.SLOT_UNAVAILABLE, booking_id, f"slot {target_slot_id} was booked concurrently")
        except NotFoundError as e:
            return self._refuse(Outcome.NOT_FOUND, booking_id, str(e))
        except StoreError as e:
            return self._store_failure(booking_id, step, e)

        logger.info("booking %s %s on slot %s", booking_id, outcome.value.lower(), target_slot_id)
        return ReservationResult(outcome, booking_id, booking=booking, slot=target)

    async def _reschedule(self, booking: Booking, target_slot_id: str) -> ReservationResult:
        old_slot_id = booking.availability_id

        step = "load slots"
        try:
            current = await self._slots.get(old_slot_id)
            target = await self._slots.get(target_slot_id)
            if target is None:
                return self._refuse(Outcome.NOT_FOUND, booking.id, f"slot {target_slot_id} does not exist")
            if not is_selectable(target, old_slot_id):
                return self._refuse(
                    Outcome.SLOT_UNAVAILABLE, booking.id, f"slot {target_slot_id} is already booked", booking=booking
                )

            # release before booking: a failure below leaks availability, never double-books
            step = "release old slot"
            if current is None:
                logger.warning("booking %s references missing slot %s; nothing to release", booking.id, old_slot_id)
            else:
                await self._release(old_slot_id)

            step = "book target slot"
            await self._slots.set_booked(target_slot_id, True, expected=False)

            step = "write booking"
            updated = booking.model_copy(update={
                "availability_id": target_slot_id,
                "number_of_reschedules": booking.number_of_reschedules + 1,
                "updated_at": self._clock(),
            })
            await self._bookings.put(updated)
        except SlotConflictError:
            return self._refuse(
                Outcome.SLOT_UNAVAILABLE,
                booking.id,
                f"slot {target_slot_id} was booked concurrently; slot {old_slot_id} was already released",
            )
        except NotFoundError as e:
            return self._refuse(Outcome.NOT_FOUND, booking.id, str(e))
        except StoreError as e:
            return self._store_failure(booking.id, step, e)

        logger.info(
            "booking %s rescheduled %s -> %s (%d/%d)",
            booking.id, old_slot_id, target_slot_id,
            updated.number_of_reschedules, self.policy.max_reschedules,
        )
        return ReservationResult(Outcome.RESCHEDULED, booking.id, booking=updated, slot=target)

    # ---------- skip ----------

    async def skip(self, student_id: str, lesson_id: str, current_slot_id: str | None = None) -> ReservationResult:
        """
        Give up the session without rebooking. Retrying is safe: an
        already-skipped booking returns ``NO_CHANGE``.
        """
        if not student_id or not lesson_id:
            return self._refuse(Outcome.INVALID_REQUEST, None, "studentId and lessonId are required to skip")

        booking_id = booking_id_for(student_id, lesson_id)

        try:
            booking = await self._bookings.get(booking_id)
        except StoreError as e:
            return self._store_failure(booking_id, "load booking", e)

        if booking is None:
            return self._refuse(Outcome.NOT_FOUND, booking_id, f"no booking {booking_id} to skip")

        if booking.status == BookingStatus.SKIPPED:
            logger.info("booking %s already skipped", booking_id)
            return ReservationResult(Outcome.NO_CHANGE, booking_id, booking=booking)

        if booking.status != BookingStatus.SCHEDULED:
            return self._refuse(
                Outcome.INVALID_TRANSITION,
                booking_id,
                f"booking is {booking.status.value}; only scheduled bookings can be skipped",
                booking=booking,
            )

        if current_slot_id and current_slot_id != booking.availability_id:
            logger.warning(
                "skip %s: caller expected slot %s, releasing stored slot %s",
                booking_id, current_slot_id, booking.availability_id,
            )

        step = "release slot"
        try:
            await self._release(booking.availability_id)

            step = "write booking"
            updated = booking.model_copy(update={
                "status": BookingStatus.SKIPPED,
                "updated_at": self._clock(),
            })
            await self._bookings.put(updated)
        except StoreError as e:
            return self._store_failure(booking_id, step, e)

        logger.info("booking %s skipped; slot %s released", booking_id, booking.availability_id)
        return ReservationResult(Outcome.SKIPPED, booking_id, booking=updated)

    # ---------- helpers ----------

    async def _release(self, slot_id: str):
        try:
            await self._slots.set_booked(slot_id, False)
        except NotFoundError:
            logger.warning("slot %s vanished before release", slot_id)

    def _refuse(self, outcome: Outcome, booking_id: str | None, message: str, booking: Booking | None = None):
        logger.warning("booking %s refused (%s, %s): %s", booking_id, outcome.value, outcome.kind.value, message)
        return ReservationResult(outcome, booking_id, booking=booking, message=message)

    def _store_failure(self, booking_id: str | None, step: str, error: StoreError):
        logger.error("booking %s aborted at '%s': %s", booking_id, step, error, exc_info=error)
        return ReservationResult(Outcome.STORE_ERROR, booking_id, message=f"{step} failed: {error}")
