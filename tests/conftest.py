#!/usr/bin/env python3
"""
pytest configuration and shared fixtures.
Every fixture is in-process: in-memory session store, in-memory platform
adapters and a controllable clock, so the suite needs no Redis, database or
platform API.
"""

import os
import sys
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from unittest.mock import patch

import pytest

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.core.config import Settings
from app.core.errors import error_aggregator
from app.schemas.betting import Event, Market, Selection
from app.schemas.ussd import UssdRequest
from app.services.adapters.memory import (
    InMemoryBetting,
    InMemoryCatalog,
    InMemoryUserDirectory,
    InMemoryWallet,
)
from app.services.platform import PlatformServices
from app.services.session_store import InMemorySessionStore
from app.services.ussd_service import UssdService

TEST_PHONE = "5551234567"
TEST_PIN = "4321"
TEST_USER_ID = "user-1"
START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Keep tests away from any real backend configured in the shell or .env"""
    test_env = {
        'APP_ENV': 'testing',
        'SESSION_BACKEND': 'memory',
        'ADAPTER_BACKEND': 'memory',
        'REDIS_URL': '',
        'DATABASE_URL': '',
        'USSD_TEST_ENDPOINT_ENABLED': 'false',
    }
    with patch.dict(os.environ, test_env):
        yield
    error_aggregator.reset()


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, APP_ENV="testing", SESSION_BACKEND="memory", ADAPTER_BACKEND="memory")


@pytest.fixture
def store(clock):
    return InMemorySessionStore(clock=clock)


def make_event(event_id: str = "ev-1", home: str = "Arsenal", away: str = "Chelsea") -> Event:
    return Event(
        event_id=event_id,
        home_team=home,
        away_team=away,
        start_time=START + timedelta(days=1),
        markets=[
            Market(market_id=f"{event_id}-goals", name="Total Goals Over/Under 2.5", selections=[
                Selection(selection_id=f"{event_id}-over", name="Over 2.5", odds=Decimal("1.90")),
                Selection(selection_id=f"{event_id}-under", name="Under 2.5", odds=Decimal("1.95")),
            ]),
            Market(market_id=f"{event_id}-mw", name="Match Winner", selections=[
                Selection(selection_id=f"{event_id}-home", name=home, odds=Decimal("2.50")),
                Selection(selection_id=f"{event_id}-draw", name="Draw", odds=Decimal("3.10")),
                Selection(selection_id=f"{event_id}-away", name=away, odds=Decimal("2.80")),
            ]),
        ],
    )


@pytest.fixture
def platform():
    """In-memory platform with one account (5551234567 / 4321, $100) and one fixture."""
    users = InMemoryUserDirectory()
    users.add_user(TEST_PHONE, "Jane Doe", TEST_PIN, user_id=TEST_USER_ID)
    wallet = InMemoryWallet()
    wallet.credit(TEST_USER_ID, Decimal("100.00"))
    catalog = InMemoryCatalog()
    catalog.add_sport("soccer", "Soccer")
    catalog.add_event("soccer", make_event())
    catalog.add_event("soccer", make_event("ev-2", "Liverpool", "Everton"))
    catalog.add_sport("tennis", "Tennis")
    return PlatformServices(
        users=users,
        wallet=wallet,
        catalog=catalog,
        betting=InMemoryBetting(wallet),
        timeout_seconds=0.5,
    )


@pytest.fixture
def ussd_service(store, platform, test_settings):
    return UssdService(store, platform, test_settings)


class Dialer:
    """Plays a handset: keeps the cumulative text the gateway would send."""

    def __init__(self, service: UssdService, session_id: str = "ATUid_0001", phone: str = "+15550001111"):
        self.service = service
        self.session_id = session_id
        self.phone = phone
        self.keys: List[str] = []

    @property
    def text(self) -> str:
        return "*".join(self.keys)

    async def send(self, text: Optional[str] = None) -> str:
        request = UssdRequest(
            session_id=self.session_id,
            service_code="*384#",
            phone_number=self.phone,
            text=self.text if text is None else text,
        )
        return await self.service.process(request)

    async def dial(self) -> str:
        self.keys = []
        return await self.send()

    async def press(self, *keys: str) -> str:
        response = ""
        for key in keys:
            self.keys.append(key)
            response = await self.send()
        return response


@pytest.fixture
def dialer(ussd_service):
    return Dialer(ussd_service)


@pytest.fixture
async def logged_in(dialer):
    """A dialer already sitting on the account menu."""
    await dialer.dial()
    response = await dialer.press("1", TEST_PHONE, TEST_PIN)
    assert response.startswith("CON Welcome Jane!")
    return dialer


@pytest.fixture(autouse=True)
def monitor_test_performance(request):
    """Monitor test performance and warn about slow tests"""
    start_time = time.time()
    yield
    duration = time.time() - start_time

    node = request.node
    if node.get_closest_marker("smoke") and duration > 1.0:
        print(f"Smoke test {node.name} took {duration:.2f}s (should be < 1s)")
    elif not node.get_closest_marker("slow") and duration > 10.0:
        print(f"Test {node.name} took {duration:.2f}s (consider marking as @pytest.mark.slow)")


def pytest_collection_modifyitems(config, items):
    """Run smoke tests first, slow tests last"""
    def test_priority(item):
        if item.get_closest_marker("smoke"):
            return 0
        elif item.get_closest_marker("integration"):
            return 2
        elif item.get_closest_marker("slow"):
            return 3
        return 1

    items[:] = sorted(items, key=test_priority)
