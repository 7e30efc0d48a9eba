from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingAction(str, Enum):
    SCHEDULE = "schedule"
    SKIP = "skip"


class RecordBookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(alias="studentId")
    lesson_id: str = Field(alias="lessonId")
    # empty for a brand-new booking
    old_slot_id: str = Field(default="", alias="oldSlotId")
    # required unless action == skip
    new_slot_id: str = Field(default="", alias="newSlotId")
    action: BookingAction = BookingAction.SCHEDULE


class RecordBookingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    execution_duration_ms: float = Field(alias="executionDurationMs")
    outcome: str
    # NotFound, PolicyViolation, StoreError or NoOpWarning; empty on a plain success
    kind: Optional[str] = None
    booking_id: Optional[str] = Field(default=None, alias="bookingId")
    message: Optional[str] = None


class BookingResponse(BaseModel):
    booking_id: str
    student_id: str
    lesson_id: str
    availability_id: str
    status: str
    number_of_reschedules: int
    created_at: datetime
    updated_at: datetime


class SessionResponse(BaseModel):
    booking_id: str
    lesson_id: str
    availability_id: str
    date: Optional[str] = None
    time_start: Optional[datetime] = None
    time_end: Optional[datetime] = None
    number_of_reschedules: int


class StudentSessionsResponse(BaseModel):
    student_id: str
    upcoming: List[SessionResponse]
    past: List[SessionResponse]


class StudentResponse(BaseModel):
    id: str
    name: str
    email: str
    display_name: str
