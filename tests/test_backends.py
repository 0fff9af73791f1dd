#!/usr/bin/env python3
"""
Backend selection from settings.
"""

import pytest

from app.core.config import Settings
from app.services.adapters.http import HttpBetting, HttpUserDirectory
from app.services.adapters.memory import InMemoryUserDirectory
from app.services.backends import build_platform_services, build_session_store
from app.services.db_session_store import DatabaseSessionStore
from app.services.redis_session import RedisSessionStore
from app.services.session_store import InMemorySessionStore


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSessionStoreSelection:

    @pytest.mark.unit
    def test_memory_is_default(self):
        store = build_session_store(make_settings(SESSION_BACKEND="memory", SESSION_TTL_MINUTES=3))
        assert isinstance(store, InMemorySessionStore)
        assert store.ttl.total_seconds() == 180

    @pytest.mark.unit
    def test_redis(self):
        store = build_session_store(make_settings(SESSION_BACKEND="redis", REDIS_URL="redis://localhost:6379/0"))
        assert isinstance(store, RedisSessionStore)

    @pytest.mark.unit
    async def test_database(self):
        store = build_session_store(make_settings(SESSION_BACKEND="database",
                                                  DATABASE_URL="sqlite+aiosqlite:///:memory:"))
        assert isinstance(store, DatabaseSessionStore)
        await store.close()

    @pytest.mark.unit
    @pytest.mark.parametrize("backend", ["redis", "database"])
    def test_missing_url_is_rejected(self, backend):
        with pytest.raises(ValueError):
            build_session_store(make_settings(SESSION_BACKEND=backend, REDIS_URL=None, DATABASE_URL=None))

    @pytest.mark.unit
    def test_unknown_backend_is_rejected(self):
        with pytest.raises(ValueError):
            build_session_store(make_settings(SESSION_BACKEND="memcached"))


class TestPlatformSelection:

    @pytest.mark.unit
    async def test_memory_is_seeded(self):
        services = build_platform_services(make_settings(ADAPTER_BACKEND="memory"))

        assert isinstance(services.users, InMemoryUserDirectory)
        demo = await services.authenticate("5551234567", "4321")
        assert demo is not None
        assert await services.balance(demo.id) == 100
        assert len(await services.sports()) >= 1

    @pytest.mark.unit
    async def test_http(self):
        services = build_platform_services(make_settings(ADAPTER_BACKEND="http",
                                                         PLATFORM_API_URL="http://platform.test/api",
                                                         ADAPTER_TIMEOUT_SECONDS=1.5))
        assert isinstance(services.users, HttpUserDirectory)
        assert isinstance(services.betting, HttpBetting)
        assert services.timeout_seconds == 1.5
        await services.close()

    @pytest.mark.unit
    def test_unknown_adapter_is_rejected(self):
        with pytest.raises(ValueError):
            build_platform_services(make_settings(ADAPTER_BACKEND="grpc"))
