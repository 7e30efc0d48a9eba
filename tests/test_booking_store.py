import pytest
from sqlalchemy.exc import OperationalError

from booking_service.booking_store import SqlBookingStore, booking_to_row, row_to_booking
from booking_service.models import BookingRow
from conftest import make_booking
from shared.domain import BookingStatus
from shared.errors import StoreError


class StubResult:
    def __init__(self, rows):
        self.rows = rows

    def scalars(self):
        return self

    def all(self):
        return list(self.rows)


class StubSession:
    def __init__(self, rows, fail=False):
        self.rows = rows
        self.fail = fail
        self.committed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def _check(self):
        if self.fail:
            raise OperationalError("SELECT 1", {}, Exception("db down"))

    async def get(self, model, key):
        self._check()
        return self.rows.get(key)

    async def merge(self, row):
        self._check()
        self.rows[row.id] = row
        return row

    async def commit(self):
        self._check()
        self.committed = True

    async def execute(self, stmt):
        self._check()
        return StubResult(sorted(self.rows.values(), key=lambda r: r.created_at))


class StubSessionFactory:
    def __init__(self, fail=False):
        self.rows = {}
        self.fail = fail
        self.sessions = []

    def __call__(self):
        session = StubSession(self.rows, self.fail)
        self.sessions.append(session)
        return session


def test_row_mapping_keeps_every_field():
    b = make_booking("S1", "L1", "A1", status=BookingStatus.SKIPPED, reschedules=1)

    row = booking_to_row(b)
    assert isinstance(row, BookingRow)
    assert row.status == "skipped"
    assert row_to_booking(row) == b


@pytest.mark.asyncio
async def test_put_then_get():
    factory = StubSessionFactory()
    store = SqlBookingStore(factory)
    b = make_booking("S1", "L1", "A1")

    await store.put(b)

    assert factory.sessions[-1].committed is True
    assert await store.get("S1_L1") == b
    assert await store.get("S1_L2") is None


@pytest.mark.asyncio
async def test_put_is_an_upsert():
    factory = StubSessionFactory()
    store = SqlBookingStore(factory)
    b = make_booking("S1", "L1", "A1")

    await store.put(b)
    await store.put(b.model_copy(update={"availability_id": "A2", "number_of_reschedules": 1}))

    assert list(factory.rows) == ["S1_L1"]
    assert (await store.get("S1_L1")).availability_id == "A2"


@pytest.mark.asyncio
async def test_list_for_student():
    factory = StubSessionFactory()
    store = SqlBookingStore(factory)
    await store.put(make_booking("S1", "L1", "A1"))

    rows = await store.list_for_student("S1")

    assert [b.id for b in rows] == ["S1_L1"]


@pytest.mark.asyncio
async def test_database_errors_become_store_errors():
    store = SqlBookingStore(StubSessionFactory(fail=True))

    with pytest.raises(StoreError):
        await store.get("S1_L1")
    with pytest.raises(StoreError):
        await store.put(make_booking("S1", "L1", "A1"))
    with pytest.raises(StoreError):
        await store.list_for_student("S1")
