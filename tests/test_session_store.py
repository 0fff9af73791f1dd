#!/usr/bin/env python3
"""
Session store tests: TTL stamping, visibility, compare-and-swap and sweeping
on the in-memory backend.
"""

import asyncio
from datetime import timedelta

import pytest

from app.core.errors import SessionConflict
from app.services.session_store import InMemorySessionStore, KeyedLock, UssdSession

TTL = timedelta(minutes=5)


class TestCreateAndGet:

    @pytest.mark.smoke
    @pytest.mark.unit
    async def test_new_session_starts_on_main_menu(self, store, clock):
        session = await store.create("s1", "+15550001111", service_code="*384#")

        assert session.current_menu == "main_menu"
        assert session.step is None
        assert session.history == []
        assert session.data == {}
        assert session.is_active
        assert session.service_code == "*384#"
        assert session.expires_at == clock.now + TTL

    @pytest.mark.unit
    async def test_get_returns_a_copy(self, store):
        await store.create("s1", "+15550001111")
        first = await store.get("s1")
        first.data["leak"] = True

        second = await store.get("s1")
        assert "leak" not in second.data

    @pytest.mark.unit
    async def test_unknown_session_is_none(self, store):
        assert await store.get("missing") is None

    @pytest.mark.unit
    async def test_expired_session_is_invisible(self, store, clock):
        await store.create("s1", "+15550001111")
        clock.advance(minutes=5)
        assert await store.get("s1") is None

    @pytest.mark.unit
    async def test_just_before_expiry_is_visible(self, store, clock):
        await store.create("s1", "+15550001111")
        clock.advance(minutes=4, seconds=59)
        assert await store.get("s1") is not None

    @pytest.mark.unit
    async def test_ended_session_is_invisible(self, store):
        await store.create("s1", "+15550001111")
        await store.end("s1")
        assert await store.get("s1") is None

    @pytest.mark.unit
    async def test_ended_session_readable_until_expiry(self, store, clock):
        await store.create("s1", "+15550001111")
        await store.update("s1", {"last_text": "0", "last_response": "END Bye"})
        await store.end("s1")

        ended = await store.get("s1", include_inactive=True)
        assert not ended.is_active
        assert ended.last_response == "END Bye"
        clock.advance(minutes=5)
        assert await store.get("s1", include_inactive=True) is None


class TestUpdate:

    @pytest.mark.essential
    @pytest.mark.unit
    async def test_update_renews_expiry(self, store, clock):
        await store.create("s1", "+15550001111")
        clock.advance(minutes=3)

        session = await store.update("s1", {"current_menu": "help"})

        assert session.current_menu == "help"
        assert session.last_activity == clock.now
        assert session.expires_at == clock.now + TTL

    @pytest.mark.unit
    async def test_expiry_strictly_increases_when_clock_stalls(self, store):
        created = await store.create("s1", "+15550001111")
        first = await store.update("s1", {"step": "a"})
        second = await store.update("s1", {"step": "b"})

        assert created.expires_at < first.expires_at < second.expires_at
        assert second.expires_at - second.last_activity == TTL

    @pytest.mark.unit
    async def test_update_bumps_version(self, store):
        created = await store.create("s1", "+15550001111")
        updated = await store.update("s1", {"step": "phone"})
        assert updated.version == created.version + 1

    @pytest.mark.unit
    async def test_stale_version_conflicts(self, store):
        created = await store.create("s1", "+15550001111")
        await store.update("s1", {"step": "phone"}, expected_version=created.version)

        with pytest.raises(SessionConflict):
            await store.update("s1", {"step": "pin"}, expected_version=created.version)

    @pytest.mark.unit
    async def test_unknown_fields_are_rejected(self, store):
        await store.create("s1", "+15550001111")
        with pytest.raises(ValueError):
            await store.update("s1", {"expires_at": None})

    @pytest.mark.unit
    async def test_update_of_expired_session_is_none(self, store, clock):
        await store.create("s1", "+15550001111")
        clock.advance(minutes=6)
        assert await store.update("s1", {"step": "x"}) is None

    @pytest.mark.unit
    async def test_scratch_roundtrip(self, store):
        await store.create("s1", "+15550001111")
        await store.set_scratch("s1", "login_phone", "5551234567")
        assert await store.get_scratch("s1", "login_phone") == "5551234567"
        assert await store.get_scratch("s1", "other") is None


class TestSweep:

    @pytest.mark.essential
    @pytest.mark.unit
    async def test_sweep_deletes_only_expired(self, store, clock):
        await store.create("old", "+15550001111")
        clock.advance(minutes=3)
        await store.create("new", "+15550002222")
        clock.advance(minutes=2)

        removed = await store.sweep_expired()

        assert removed == 1
        assert len(store) == 1
        assert await store.get("new") is not None

    @pytest.mark.unit
    async def test_sweep_removes_ended_sessions_once_expired(self, store, clock):
        await store.create("s1", "+15550001111")
        await store.end("s1")
        assert await store.sweep_expired() == 0

        clock.advance(minutes=5)
        assert await store.sweep_expired() == 1


class TestSessionSerialization:

    @pytest.mark.unit
    def test_dict_roundtrip(self, clock):
        session = UssdSession(session_id="s1", phone_number="+1555", data={"k": [1, 2]},
                              history=["main_menu"], created_at=clock.now,
                              last_activity=clock.now, expires_at=clock.now + TTL)
        restored = UssdSession.from_dict(session.to_dict())
        assert restored == session


class TestKeyedLock:

    @pytest.mark.unit
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("s1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
        assert len(locks) == 0

    @pytest.mark.unit
    async def test_concurrent_updates_do_not_lose_writes(self, clock):
        store = InMemorySessionStore(clock=clock)
        await store.create("s1", "+15550001111")

        async def bump(i):
            while True:
                session = await store.get("s1")
                try:
                    history = session.history + [str(i)]
                    return await store.update("s1", {"history": history}, expected_version=session.version)
                except SessionConflict:
                    continue

        await asyncio.gather(*(bump(i) for i in range(10)))
        final = await store.get("s1")
        assert sorted(final.history, key=int) == [str(i) for i in range(10)]
