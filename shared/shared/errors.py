class StoreError(Exception):
    """A backing store read or write failed (network, throttling, rejection)."""


class NotFoundError(Exception):
    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class SlotConflictError(Exception):
    """Compare-and-swap on a slot's booked flag lost against another writer."""

    def __init__(self, slot_id: str, expected: bool):
        super().__init__(f"slot {slot_id} is_booked != {expected}")
        self.slot_id = slot_id
        self.expected = expected
