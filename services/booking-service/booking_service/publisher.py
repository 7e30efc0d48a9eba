import logging

from shared.events import build_event
from shared.rabbitmq import RabbitPublisher

from .config import RABBIT_URL, SERVICE_NAME
from .engine import Outcome, ReservationResult

logger = logging.getLogger(__name__)

publisher = RabbitPublisher(RABBIT_URL)

# NO_CHANGE and failures publish nothing
EVENT_TYPES = {
    Outcome.CREATED: "booking.created",
    Outcome.REACTIVATED: "booking.reactivated",
    Outcome.RESCHEDULED: "booking.rescheduled",
    Outcome.SKIPPED: "booking.skipped",
}


def result_event(result: ReservationResult) -> dict | None:
    event_type = EVENT_TYPES.get(result.outcome)
    if not event_type or result.booking is None:
        return None

    booking = result.booking
    return build_event(
        event_type,
        {
            "booking_id": booking.id,
            "student_id": booking.student_id,
            "lesson_id": booking.lesson_id,
            "availability_id": booking.availability_id,
            "instructor_id": result.slot.instructor_id if result.slot else None,
            "status": booking.status.value,
            "number_of_reschedules": booking.number_of_reschedules,
        },
        source=SERVICE_NAME,
    )


async def publish_result(pub: RabbitPublisher, result: ReservationResult):
    event = result_event(result)
    if event is None:
        return
    if await pub.publish(event):
        logger.debug("published %s for %s", event["event_type"], result.booking_id)
