"""
Building and replacing an instructor's slots for one day.

Booked slots are never deleted or overwritten here; only the reservation
engine clears a booked flag.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable

from dateutil import parser

from shared.domain import AvailabilitySlot


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def slot_id_for(instructor_id: str, start: datetime) -> str:
    return f"{instructor_id}-{start.date().isoformat()}-{start:%H%M}"


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def default_day_slots(
    instructor_id: str,
    day: date,
    start_hour: int = 8,
    end_hour: int = 18,
    slot_minutes: int = 60,
) -> list[AvailabilitySlot]:
    if not 0 <= start_hour < end_hour <= 24:
        raise ValueError("default day hours must satisfy 0 <= start < end <= 24")
    if slot_minutes <= 0:
        raise ValueError("slot length must be positive")

    step = timedelta(minutes=slot_minutes)
    cursor = datetime.combine(day, time(start_hour), tzinfo=timezone.utc)
    day_end = datetime.combine(day, time(0), tzinfo=timezone.utc) + timedelta(hours=end_hour)

    slots = []
    while cursor + step <= day_end:
        slots.append(AvailabilitySlot(
            id=slot_id_for(instructor_id, cursor),
            instructor_id=instructor_id,
            date=day,
            time_start=cursor,
            time_end=cursor + step,
        ))
        cursor += step
    return slots


def build_day_slots(instructor_id: str, day: date, windows: Iterable) -> list[AvailabilitySlot]:
    """
    Turn requested ``start``/``end`` windows (ISO strings) into slots for
    ``day``. Raises ValueError for unparsable, inverted or off-day windows.
    """
    slots = []
    for w in windows:
        start = _as_utc(parser.isoparse(w.start))
        end = _as_utc(parser.isoparse(w.end))
        if start.date() != day:
            raise ValueError(f"slot starting {w.start} is not on {day.isoformat()}")
        slots.append(AvailabilitySlot(
            id=slot_id_for(instructor_id, start),
            instructor_id=instructor_id,
            date=day,
            time_start=start,
            time_end=end,
            description=getattr(w, "description", None),
        ))
    ids = [s.id for s in slots]
    if len(ids) != len(set(ids)):
        raise ValueError("two slots start at the same time")
    return slots


def plan_day_replacement(
    existing: list[AvailabilitySlot],
    requested: list[AvailabilitySlot],
) -> tuple[list[AvailabilitySlot], list[AvailabilitySlot], list[AvailabilitySlot]]:
    """
    Returns ``(to_delete, to_save, rejected)``.

    Unbooked existing slots are replaced wholesale. Booked ones stay, and any
    requested slot that collides with a booked slot is rejected.
    """
    booked = [s for s in existing if s.is_booked]
    to_delete = [s for s in existing if not s.is_booked]

    to_save, rejected = [], []
    for slot in requested:
        clash = any(
            b.id == slot.id or overlaps(b.time_start, b.time_end, slot.time_start, slot.time_end)
            for b in booked
        )
        if clash:
            rejected.append(slot)
        else:
            to_save.append(slot)

    # a requested slot reusing an unbooked id is rewritten, not deleted
    saved_ids = {s.id for s in to_save}
    to_delete = [s for s in to_delete if s.id not in saved_ids]
    return to_delete, to_save, rejected
