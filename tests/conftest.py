import json
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from slot_reservation.db import create_schema, get_engine, get_session
from slot_reservation.events import to_json
from slot_reservation.service import BookingService

SLOT_START = datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Controllable wall clock for hold expiry checks."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class RecordingPublisher:
    enabled = True

    def __init__(self):
        self.events = []

    async def publish_event(self, event: dict) -> bool:
        self.events.append((event["event_type"], json.loads(to_json(event))))
        return True

    def types(self) -> list[str]:
        return [rk for rk, _ in self.events]


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 1, 9, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine(tmp_path):
    eng = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}")
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session(engine)


@pytest.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def service(session_factory, redis_client, publisher, clock):
    return BookingService(
        session_factory,
        redis_client,
        publisher=publisher,
        hold_ttl_seconds=300,
        confirm_status="Pending",
        now=clock,
    )


@pytest.fixture
def hold_slot(service):
    """Hold P1@2025-01-10T10:00Z for 30 minutes as customer C1 unless told otherwise."""

    async def _hold(resource_id="P1", owner_id="C1", start_at=SLOT_START, duration_minutes=30, **kwargs):
        return await service.acquire_hold(resource_id, "S1", owner_id, start_at, duration_minutes, **kwargs)

    return _hold
