from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request

from shared.directory import DirectoryClient, DirectoryError
from shared.domain import AvailabilitySlot
from shared.events import build_event
from shared.rabbitmq import RabbitPublisher
from shared.rbac import require_role, require_self_or_admin
from shared.security import get_current_user
from shared.selector import candidate_dates, is_selectable, slots_on_date
from shared.slot_store import RedisAvailabilityStore

from .config import (
    DEFAULT_DAY_END_HOUR,
    DEFAULT_DAY_START_HOUR,
    DEFAULT_SLOT_MINUTES,
    DIRECTORY_SERVICE_URL,
    SERVICE_NAME,
)
from .rabbitmq import publisher
from .redis_client import redis_client
from .schemas import CalendarResponse, DaySlotsResponse, ReplaceDayResponse, SetDaySlots, SlotView
from .slots import build_day_slots, default_day_slots, plan_day_replacement

router = APIRouter()

ANY_ROLE = ["student", "instructor", "admin"]


def get_slot_store():
    return RedisAvailabilityStore(redis_client)


def get_publisher() -> RabbitPublisher:
    return publisher


def get_directory() -> DirectoryClient:
    return DirectoryClient(DIRECTORY_SERVICE_URL)


def _view(slot: AvailabilitySlot, current_slot_id: str | None = None) -> SlotView:
    return SlotView(
        id=slot.id,
        instructor_id=slot.instructor_id,
        date=slot.date.isoformat(),
        time_start=slot.time_start,
        time_end=slot.time_end,
        is_booked=slot.is_booked,
        description=slot.description,
        selectable=is_selectable(slot, current_slot_id),
    )


async def _publish_updated(pub: RabbitPublisher, instructor_id: str, day: date):
    ev = build_event(
        "availability.updated",
        {"instructor_id": instructor_id, "date": day.isoformat()},
        source=SERVICE_NAME,
    )
    await pub.publish(ev)


async def _calendar(store: RedisAvailabilityStore, instructor_id: str, current_slot_id: str | None):
    free = await store.list_free(instructor_id, include_slot_id=current_slot_id)
    dates = sorted(candidate_dates(free))
    return CalendarResponse(instructor_id=instructor_id, dates=[d.isoformat() for d in dates])


# ---------- instructor/admin: manage a day ----------

@router.get("/availability/{instructor_id}/days/{day}", response_model=DaySlotsResponse)
async def get_day(
    instructor_id: str,
    day: date,
    user=Depends(get_current_user),
    store: RedisAvailabilityStore = Depends(get_slot_store),
):
    """Every slot on the day, booked or not, for the management screen."""
    require_self_or_admin(user, instructor_id, ["instructor"])

    slots = slots_on_date(await store.list_for_instructor(instructor_id), day)
    return DaySlotsResponse(
        instructor_id=instructor_id,
        date=day.isoformat(),
        slots=[_view(s) for s in slots],
    )


@router.put("/availability/{instructor_id}/days/{day}", response_model=ReplaceDayResponse)
async def replace_day(
    instructor_id: str,
    day: date,
    data: SetDaySlots,
    user=Depends(get_current_user),
    store: RedisAvailabilityStore = Depends(get_slot_store),
    pub: RabbitPublisher = Depends(get_publisher),
):
    require_self_or_admin(user, instructor_id, ["instructor"])

    try:
        requested = build_day_slots(instructor_id, day, data.slots)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    existing = slots_on_date(await store.list_for_instructor(instructor_id), day)
    to_delete, to_save, rejected = plan_day_replacement(existing, requested)

    # slots booked since the listing above are refused by the store
    kept = await store.delete_many(to_delete)
    refused = await store.save_many(to_save)

    await _publish_updated(pub, instructor_id, day)

    return ReplaceDayResponse(
        instructor_id=instructor_id,
        date=day.isoformat(),
        saved=[s.id for s in to_save if s.id not in refused],
        deleted=[s.id for s in to_delete if s.id not in kept],
        rejected=[s.id for s in rejected] + kept + [i for i in refused if i not in kept],
    )


@router.post("/availability/{instructor_id}/days/{day}/defaults", response_model=DaySlotsResponse)
async def create_default_day(
    instructor_id: str,
    day: date,
    user=Depends(get_current_user),
    store: RedisAvailabilityStore = Depends(get_slot_store),
    pub: RabbitPublisher = Depends(get_publisher),
):
    """Open an empty day with the default working hours; a day that has slots is left alone."""
    require_self_or_admin(user, instructor_id, ["instructor"])

    existing = slots_on_date(await store.list_for_instructor(instructor_id), day)
    if existing:
        slots = existing
    else:
        slots = default_day_slots(
            instructor_id,
            day,
            start_hour=DEFAULT_DAY_START_HOUR,
            end_hour=DEFAULT_DAY_END_HOUR,
            slot_minutes=DEFAULT_SLOT_MINUTES,
        )
        await store.save_many(slots)
        await _publish_updated(pub, instructor_id, day)

    return DaySlotsResponse(
        instructor_id=instructor_id,
        date=day.isoformat(),
        slots=[_view(s) for s in slots],
    )


# ---------- anyone signed in: pick a slot ----------

@router.get("/availability/{instructor_id}/calendar", response_model=CalendarResponse)
async def get_calendar(
    instructor_id: str,
    current_slot_id: str | None = None,
    user=Depends(get_current_user),
    store: RedisAvailabilityStore = Depends(get_slot_store),
):
    require_role(user, ANY_ROLE)
    return await _calendar(store, instructor_id, current_slot_id)


@router.get("/availability/{instructor_id}/slots", response_model=DaySlotsResponse)
async def get_selectable_slots(
    instructor_id: str,
    day: date,
    current_slot_id: str | None = None,
    user=Depends(get_current_user),
    store: RedisAvailabilityStore = Depends(get_slot_store),
):
    """Free slots on ``day`` plus the booking's own current slot, in start order."""
    require_role(user, ANY_ROLE)

    free = await store.list_free(instructor_id, include_slot_id=current_slot_id)
    return DaySlotsResponse(
        instructor_id=instructor_id,
        date=day.isoformat(),
        slots=[_view(s, current_slot_id) for s in slots_on_date(free, day)],
    )


@router.get("/courses/{course_id}/calendar", response_model=CalendarResponse)
async def get_course_calendar(
    course_id: str,
    request: Request,
    current_slot_id: str | None = None,
    user=Depends(get_current_user),
    store: RedisAvailabilityStore = Depends(get_slot_store),
    directory: DirectoryClient = Depends(get_directory),
):
    require_role(user, ANY_ROLE)

    try:
        course = await directory.fetch_course(course_id, request_id=getattr(request.state, "request_id", None))
    except DirectoryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if not course.instructor_id:
        raise HTTPException(status_code=404, detail="Course has no instructor")

    return await _calendar(store, course.instructor_id, current_slot_id)
