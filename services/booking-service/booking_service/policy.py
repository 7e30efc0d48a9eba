from shared.domain import Booking, BookingStatus

DEFAULT_MAX_RESCHEDULES = 2


class ReschedulePolicy:
    def __init__(self, max_reschedules: int = DEFAULT_MAX_RESCHEDULES):
        if max_reschedules < 0:
            raise ValueError("max_reschedules must be non-negative")
        self.max_reschedules = max_reschedules

    def can_reschedule(self, booking: Booking) -> bool:
        return (
            booking.status == BookingStatus.SCHEDULED
            and booking.number_of_reschedules < self.max_reschedules
        )

    def is_no_op(self, booking: Booking, target_slot_id: str) -> bool:
        return booking.availability_id == target_slot_id
