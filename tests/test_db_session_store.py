#!/usr/bin/env python3
"""
SQL session store tests against in-memory SQLite (aiosqlite).
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.errors import SessionConflict
from app.db.base import init_db
from app.db.session import create_sessionmaker
from app.services.db_session_store import DatabaseSessionStore

# Test database configuration
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_store(clock):
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    store = DatabaseSessionStore(create_sessionmaker(engine), clock=clock, engine=engine)
    yield store
    await store.close()


class TestDatabaseSessionStore:

    @pytest.mark.essential
    async def test_create_and_get(self, db_store, clock):
        await db_store.create("s1", "+15550001111", service_code="*384#", network_code="63902")
        session = await db_store.get("s1")

        assert session.session_id == "s1"
        assert session.current_menu == "main_menu"
        assert session.network_code == "63902"
        assert session.expires_at == clock.now + timedelta(minutes=5)

    async def test_update_persists_json_fields(self, db_store):
        await db_store.create("s1", "+15550001111")
        await db_store.update("s1", {
            "current_menu": "bet_placement",
            "step": "stake",
            "history": ["main_menu", "login", "account_menu"],
            "data": {"stake": "10.00", "event": {"event_id": "ev-1"}},
        })

        session = await db_store.get("s1")
        assert session.step == "stake"
        assert session.history == ["main_menu", "login", "account_menu"]
        assert session.data["event"] == {"event_id": "ev-1"}
        assert session.version == 1

    async def test_expiry_moves_forward(self, db_store, clock):
        created = await db_store.create("s1", "+15550001111")
        clock.advance(minutes=2)
        updated = await db_store.update("s1", {"step": "phone"})

        assert updated.expires_at == clock.now + timedelta(minutes=5)
        assert updated.expires_at > created.expires_at

    async def test_stale_version_conflicts(self, db_store):
        created = await db_store.create("s1", "+15550001111")
        await db_store.update("s1", {"step": "phone"}, expected_version=created.version)

        with pytest.raises(SessionConflict):
            await db_store.update("s1", {"step": "pin"}, expected_version=created.version)

    async def test_expired_session_is_invisible(self, db_store, clock):
        await db_store.create("s1", "+15550001111")
        clock.advance(minutes=5)

        assert await db_store.get("s1") is None
        assert await db_store.update("s1", {"step": "phone"}) is None

    async def test_end_hides_session(self, db_store):
        await db_store.create("s1", "+15550001111")
        await db_store.update("s1", {"last_response": "END Bye"})
        await db_store.end("s1")

        assert await db_store.get("s1") is None
        ended = await db_store.get("s1", include_inactive=True)
        assert not ended.is_active
        assert ended.last_response == "END Bye"

    async def test_create_replaces_expired_record(self, db_store, clock):
        await db_store.create("s1", "+15550001111")
        await db_store.update("s1", {"current_menu": "help"})
        clock.advance(minutes=10)

        fresh = await db_store.create("s1", "+15550001111")

        assert fresh.current_menu == "main_menu"
        assert (await db_store.get("s1")).version == 0

    async def test_sweep(self, db_store, clock):
        await db_store.create("old", "+15550001111")
        clock.advance(minutes=4)
        await db_store.create("new", "+15550002222")
        clock.advance(minutes=1)

        assert await db_store.sweep_expired() == 1
        assert await db_store.get("new") is not None

    async def test_ping(self, db_store):
        assert await db_store.ping() is True
