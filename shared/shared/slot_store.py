"""
Availability Store accessor.

Slots live in Redis as one hash per slot plus a per-instructor index set:

    slot:{id}                           -> hash of slot fields
    slots_by_instructor:{instructor_id} -> set of slot ids

This layer does I/O only. It turns Redis failures into ``StoreError`` and
leaves every booking rule to the reservation engine.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol

import redis.asyncio as redis
from dateutil import parser

from .domain import AvailabilitySlot
from .errors import NotFoundError, SlotConflictError, StoreError

logger = logging.getLogger(__name__)

# KEYS[1] slot hash; ARGV: new flag, expected flag ("" = unconditional), updated_at
SET_BOOKED_LUA = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return -1
end
if ARGV[2] ~= '' and redis.call('HGET', KEYS[1], 'is_booked') ~= ARGV[2] then
  return 0
end
redis.call('HSET', KEYS[1], 'is_booked', ARGV[1], 'updated_at', ARGV[3])
return 1
"""

# KEYS[1] slot hash, KEYS[2] instructor index; ARGV[1] slot id.
# A booked slot is left alone (0); otherwise hash and index entry go (1).
DELETE_FREE_LUA = """
if redis.call('HGET', KEYS[1], 'is_booked') == '1' then
  return 0
end
redis.call('DEL', KEYS[1])
redis.call('SREM', KEYS[2], ARGV[1])
return 1
"""

# KEYS as above; ARGV[1] slot id, ARGV[2..] field/value pairs.
# Never overwrites a booked slot (0).
SAVE_FREE_LUA = """
if redis.call('HGET', KEYS[1], 'is_booked') == '1' then
  return 0
end
redis.call('DEL', KEYS[1])
redis.call('HSET', KEYS[1], unpack(ARGV, 2))
redis.call('SADD', KEYS[2], ARGV[1])
return 1
"""


def slot_key(slot_id: str) -> str:
    return f"slot:{slot_id}"


def instructor_index_key(instructor_id: str) -> str:
    return f"slots_by_instructor:{instructor_id}"


def _flag(value: bool) -> str:
    return "1" if value else "0"


def slot_to_hash(slot: AvailabilitySlot) -> dict:
    return {
        "id": slot.id,
        "instructor_id": slot.instructor_id,
        "date": slot.date.isoformat(),
        "time_start": slot.time_start.isoformat(),
        "time_end": slot.time_end.isoformat(),
        "is_booked": _flag(slot.is_booked),
        "description": slot.description or "",
        "updated_at": slot.updated_at.isoformat() if slot.updated_at else "",
    }


def slot_from_hash(data: dict) -> AvailabilitySlot:
    return AvailabilitySlot(
        id=data["id"],
        instructor_id=data["instructor_id"],
        date=parser.isoparse(data["date"]).date(),
        time_start=parser.isoparse(data["time_start"]),
        time_end=parser.isoparse(data["time_end"]),
        is_booked=data.get("is_booked") == "1",
        description=data.get("description") or None,
        updated_at=parser.isoparse(data["updated_at"]) if data.get("updated_at") else None,
    )


class AvailabilityStore(Protocol):
    async def get(self, slot_id: str) -> AvailabilitySlot | None: ...

    async def list_free(self, instructor_id: str, include_slot_id: str | None = None) -> list[AvailabilitySlot]: ...

    async def set_booked(self, slot_id: str, booked: bool, expected: bool | None = None) -> None: ...


class RedisAvailabilityStore:
    def __init__(self, redis_client, clock: Callable[[], datetime] | None = None):
        self._redis = redis_client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get(self, slot_id: str) -> AvailabilitySlot | None:
        try:
            data = await self._redis.hgetall(slot_key(slot_id))
        except redis.RedisError as e:
            raise StoreError(f"read slot {slot_id}: {e}") from e
        if not data:
            return None
        try:
            return slot_from_hash(data)
        except (KeyError, ValueError) as e:
            raise StoreError(f"malformed slot {slot_id}: {e}") from e

    async def list_for_instructor(self, instructor_id: str) -> list[AvailabilitySlot]:
        try:
            ids = await self._redis.smembers(instructor_index_key(instructor_id))
            if not ids:
                return []
            pipe = self._redis.pipeline()
            for slot_id in ids:
                pipe.hgetall(slot_key(slot_id))
            rows = await pipe.execute()
        except redis.RedisError as e:
            raise StoreError(f"list slots for {instructor_id}: {e}") from e

        slots = []
        for row in rows:
            # index entries can outlive a deleted hash
            if not row:
                continue
            try:
                slots.append(slot_from_hash(row))
            except (KeyError, ValueError) as e:
                logger.warning("skipping malformed slot %s: %s", row.get("id"), e)
        slots.sort(key=lambda s: s.time_start)
        return slots

    async def list_free(self, instructor_id: str, include_slot_id: str | None = None) -> list[AvailabilitySlot]:
        slots = await self.list_for_instructor(instructor_id)
        return [s for s in slots if not s.is_booked or (include_slot_id and s.id == include_slot_id)]

    async def set_booked(self, slot_id: str, booked: bool, expected: bool | None = None) -> None:
        """
        Flip ``is_booked`` and refresh ``updated_at``.

        With ``expected`` set this is a compare-and-swap: the write only lands
        if the stored flag still equals ``expected``.
        """
        updated_at = self._clock().isoformat()
        expected_arg = "" if expected is None else _flag(expected)
        try:
            result = await self._redis.eval(
                SET_BOOKED_LUA, 1, slot_key(slot_id), _flag(booked), expected_arg, updated_at
            )
        except redis.RedisError as e:
            raise StoreError(f"set_booked {slot_id}: {e}") from e

        result = int(result)
        if result == -1:
            raise NotFoundError("slot", slot_id)
        if result == 0:
            raise SlotConflictError(slot_id, expected)

    async def _eval_each(self, script: str, slots: list[AvailabilitySlot], extra_args, what: str) -> list[str]:
        """Run ``script`` per slot in one pipeline; ids the script refused (0) come back."""
        pipe = self._redis.pipeline()
        for slot in slots:
            pipe.eval(
                script, 2, slot_key(slot.id), instructor_index_key(slot.instructor_id),
                slot.id, *extra_args(slot),
            )
        try:
            results = await pipe.execute()
        except redis.RedisError as e:
            raise StoreError(f"{what} slots: {e}") from e

        skipped = [slot.id for slot, res in zip(slots, results) if int(res) == 0]
        if skipped:
            logger.warning("%s skipped booked slots: %s", what, ", ".join(skipped))
        return skipped

    async def save_many(self, slots: Iterable[AvailabilitySlot]) -> list[str]:
        """Write slots, except over a slot that is booked now. Returns the skipped ids."""
        slots = list(slots)
        if not slots:
            return []

        def fields(slot):
            return [x for pair in slot_to_hash(slot).items() for x in pair]

        return await self._eval_each(SAVE_FREE_LUA, slots, fields, "save")

    async def delete_many(self, slots: Iterable[AvailabilitySlot]) -> list[str]:
        """
        Delete slots that are still free when the delete runs. A slot booked
        since the caller read it stays; its id is returned.
        """
        slots = list(slots)
        if not slots:
            return []
        return await self._eval_each(DELETE_FREE_LUA, slots, lambda slot: [], "delete")
