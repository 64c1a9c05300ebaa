"""API test fixtures — FastAPI app with a fake-backed schedule service.

Invariants:
    - The lifespan is not run: app.state.schedule_service is set per test and removed after
    - The service uses FakeRemote + ManualClock, so responses are deterministic

Design Decisions:
    - httpx.AsyncClient over ASGITransport: exercises real routing, handlers, and serialization
"""

from datetime import datetime

import pytest
import pytz
from httpx import ASGITransport, AsyncClient

from salah_engine.core.calculation_methods import get_method
from salah_engine.main import app
from salah_engine.services.schedule_service import PrayerScheduleService

from tests.services.fakes import FakeRemote, ManualClock, fake_timezones


@pytest.fixture
def schedule_service():
    clock = ManualClock(pytz.utc.localize(datetime(2025, 6, 21, 10, 0)))
    return PrayerScheduleService(
        FakeRemote(), clock=clock, timezones=fake_timezones(),
        default_method=get_method("TURKEY"),
    )


@pytest.fixture
async def client(schedule_service):
    """Test client with the schedule service wired onto app.state."""
    app.state.schedule_service = schedule_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.schedule_service


@pytest.fixture
async def bare_client():
    """Client against an app whose service was never built."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
