from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel


class BookingStatus(str, Enum):
    SCHEDULED = "scheduled"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    CANCELED = "canceled"


def booking_id_for(student_id: str, lesson_id: str) -> str:
    # one booking per (student, lesson); same pair always maps to the same record
    return f"{student_id}_{lesson_id}"


class AvailabilitySlot(BaseModel):
    id: str
    instructor_id: str
    date: date
    time_start: datetime
    time_end: datetime
    is_booked: bool = False
    description: str | None = None
    updated_at: datetime | None = None

    def model_post_init(self, __context):
        if self.time_end <= self.time_start:
            raise ValueError(f"slot {self.id}: time_end must be after time_start")


class Booking(BaseModel):
    id: str
    student_id: str
    lesson_id: str
    availability_id: str
    status: BookingStatus = BookingStatus.SCHEDULED
    number_of_reschedules: int = 0
    created_at: datetime
    updated_at: datetime

    def model_post_init(self, __context):
        if self.number_of_reschedules < 0:
            raise ValueError("number_of_reschedules must be non-negative")
