from sqlalchemy import Column, Integer, String, DateTime

from shared.database import Base


class BookingRow(Base):
    __tablename__ = "bookings"

    # "{student_id}_{lesson_id}"
    id = Column(String, primary_key=True)

    student_id = Column(String, nullable=False, index=True)
    lesson_id = Column(String, nullable=False)
    availability_id = Column(String, nullable=False, index=True)

    status = Column(String, nullable=False, index=True)  # scheduled/skipped/completed/canceled
    number_of_reschedules = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
