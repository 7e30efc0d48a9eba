import asyncio
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from shared import idempotency
from shared.directory import DirectoryClient, DirectoryError
from shared.domain import BookingStatus
from shared.rabbitmq import RabbitPublisher
from shared.rbac import require_role, require_self_or_admin
from shared.security import get_current_user
from shared.slot_store import RedisAvailabilityStore

from .booking_store import SqlBookingStore
from .config import DIRECTORY_SERVICE_URL, IDEMPOTENCY_TTL_SECONDS, MAX_RESCHEDULES
from .db import SessionLocal
from .engine import ReservationEngine, ReservationResult
from .policy import ReschedulePolicy
from .publisher import publish_result, publisher
from .redis_client import redis_client
from .schemas import (
    BookingAction,
    BookingResponse,
    RecordBookingRequest,
    RecordBookingResponse,
    SessionResponse,
    StudentResponse,
    StudentSessionsResponse,
)

router = APIRouter()

IDEMPOTENCY_SCOPE = "record_booking"


def get_redis():
    return redis_client


def get_slot_store():
    return RedisAvailabilityStore(redis_client)


def get_booking_store():
    return SqlBookingStore(SessionLocal)


def get_reservation_engine(
    slots=Depends(get_slot_store),
    bookings=Depends(get_booking_store),
):
    return ReservationEngine(slots, bookings, ReschedulePolicy(MAX_RESCHEDULES))


def get_publisher() -> RabbitPublisher:
    return publisher


def get_directory() -> DirectoryClient:
    return DirectoryClient(DIRECTORY_SERVICE_URL)


async def _run(engine: ReservationEngine, data: RecordBookingRequest) -> ReservationResult:
    if data.action == BookingAction.SKIP:
        return await engine.skip(data.student_id, data.lesson_id, data.old_slot_id or None)
    return await engine.reserve(
        data.student_id, data.lesson_id, data.new_slot_id, current_slot_id=data.old_slot_id or None
    )


@router.post("/bookings/record", response_model=RecordBookingResponse)
async def record_booking(
    data: RecordBookingRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    user=Depends(get_current_user),
    engine: ReservationEngine = Depends(get_reservation_engine),
    pub: RabbitPublisher = Depends(get_publisher),
    redis=Depends(get_redis),
):
    """
    Schedule, reschedule or skip a lesson session.

    Engine outcomes always come back as HTTP 200 with ``status`` SUCCESS or
    ERROR; ``outcome`` carries the precise reason.
    """
    require_self_or_admin(user, data.student_id, ["student"])

    if idempotency_key:
        scoped_key = f"{user['sub']}:{idempotency_key}"
        cached = await idempotency.get_response(redis, IDEMPOTENCY_SCOPE, scoped_key)
        if cached == idempotency.PENDING:
            raise HTTPException(status_code=409, detail="Request with this Idempotency-Key is in progress")
        if cached:
            return cached
        if not await idempotency.claim(redis, IDEMPOTENCY_SCOPE, scoped_key, IDEMPOTENCY_TTL_SECONDS):
            raise HTTPException(status_code=409, detail="Request with this Idempotency-Key is in progress")

    start = time.perf_counter()
    try:
        result = await _run(engine, data)
    except Exception:
        if idempotency_key:
            await idempotency.release(redis, IDEMPOTENCY_SCOPE, scoped_key)
        raise
    duration_ms = (time.perf_counter() - start) * 1000

    response = RecordBookingResponse(
        status=result.status,
        execution_duration_ms=round(duration_ms, 2),
        outcome=result.outcome.value,
        kind=result.outcome.kind.value if result.outcome.kind else None,
        booking_id=result.booking_id,
        message=result.message,
    )

    await publish_result(pub, result)

    if idempotency_key:
        await idempotency.store_response(
            redis,
            IDEMPOTENCY_SCOPE,
            scoped_key,
            response.model_dump(by_alias=True),
            IDEMPOTENCY_TTL_SECONDS,
        )

    return response


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    user=Depends(get_current_user),
    bookings: SqlBookingStore = Depends(get_booking_store),
):
    booking = await bookings.get(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    require_self_or_admin(user, booking.student_id, ["student"])

    return BookingResponse(
        booking_id=booking.id,
        student_id=booking.student_id,
        lesson_id=booking.lesson_id,
        availability_id=booking.availability_id,
        status=booking.status.value,
        number_of_reschedules=booking.number_of_reschedules,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


@router.get("/students/{student_id}/sessions", response_model=StudentSessionsResponse)
async def student_sessions(
    student_id: str,
    user=Depends(get_current_user),
    bookings: SqlBookingStore = Depends(get_booking_store),
    slots: RedisAvailabilityStore = Depends(get_slot_store),
):
    """Scheduled sessions split into upcoming and past by slot start time."""
    require_self_or_admin(user, student_id, ["student"])

    scheduled = [
        b for b in await bookings.list_for_student(student_id)
        if b.status == BookingStatus.SCHEDULED
    ]
    booked_slots = await asyncio.gather(*[slots.get(b.availability_id) for b in scheduled])

    now = datetime.now(timezone.utc)
    upcoming, past = [], []
    for booking, slot in zip(scheduled, booked_slots):
        session = SessionResponse(
            booking_id=booking.id,
            lesson_id=booking.lesson_id,
            availability_id=booking.availability_id,
            date=slot.date.isoformat() if slot else None,
            time_start=slot.time_start if slot else None,
            time_end=slot.time_end if slot else None,
            number_of_reschedules=booking.number_of_reschedules,
        )
        if slot and slot.time_end <= now:
            past.append(session)
        else:
            upcoming.append(session)

    upcoming.sort(key=lambda s: s.time_start or now)
    past.sort(key=lambda s: s.time_start, reverse=True)
    return StudentSessionsResponse(student_id=student_id, upcoming=upcoming, past=past)


@router.get("/students", response_model=list[StudentResponse])
async def list_students(
    request: Request,
    user=Depends(get_current_user),
    directory: DirectoryClient = Depends(get_directory),
):
    require_role(user, ["admin"])

    try:
        students = await directory.fetch_students(request_id=getattr(request.state, "request_id", None))
    except DirectoryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return [
        StudentResponse(id=s.id, name=s.name, email=s.email, display_name=s.display_name)
        for s in students
    ]
