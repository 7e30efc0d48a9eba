"""
Slot selection over in-memory availability.

Pure functions: no I/O, no mutation of the input slots.
"""

from datetime import date
from typing import Iterable

from .domain import AvailabilitySlot


def candidate_dates(slots: Iterable[AvailabilitySlot]) -> set[date]:
    """Distinct dates that have at least one slot; used to mark a calendar."""
    return {s.date for s in slots}


def slots_on_date(slots: Iterable[AvailabilitySlot], day: date) -> list[AvailabilitySlot]:
    # sorted() is stable: equal start times keep input order
    return sorted((s for s in slots if s.date == day), key=lambda s: s.time_start)


def is_selectable(slot: AvailabilitySlot, current_booking_slot_id: str | None = None) -> bool:
    """A booking may always re-select its own current slot, even though it is booked."""
    if not slot.is_booked:
        return True
    return bool(current_booking_slot_id) and slot.id == current_booking_slot_id
