from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional


class SlotWindow(BaseModel):
    start: str
    end: str
    description: Optional[str] = None


class SetDaySlots(BaseModel):
    slots: List[SlotWindow]


class SlotView(BaseModel):
    id: str
    instructor_id: str
    date: str
    time_start: datetime
    time_end: datetime
    is_booked: bool
    description: Optional[str] = None
    selectable: bool = True


class DaySlotsResponse(BaseModel):
    instructor_id: str
    date: str
    slots: List[SlotView]


class ReplaceDayResponse(BaseModel):
    instructor_id: str
    date: str
    saved: List[str]
    deleted: List[str]
    rejected: List[str]


class CalendarResponse(BaseModel):
    instructor_id: str
    dates: List[str]
