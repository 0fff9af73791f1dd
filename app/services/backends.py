# app/services/backends.py
"""
Builds the session store and platform services selected in settings.
"""
import logging

from app.core.config import Settings
from app.services.adapters.http import HttpBetting, HttpCatalog, HttpUserDirectory, HttpWallet, PlatformApi
from app.services.adapters.memory import (
    InMemoryBetting,
    InMemoryCatalog,
    InMemoryUserDirectory,
    InMemoryWallet,
    seed_demo_data,
)
from app.services.platform import PlatformServices
from app.services.session_store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)


def build_session_store(cfg: Settings) -> SessionStore:
    backend = cfg.SESSION_BACKEND.lower()
    ttl = cfg.session_ttl_seconds

    if backend == "redis":
        if not cfg.REDIS_URL:
            raise ValueError("SESSION_BACKEND=redis requires REDIS_URL")
        from app.services.redis_session import RedisSessionStore
        return RedisSessionStore.from_url(cfg.REDIS_URL, ttl_seconds=ttl)

    if backend == "database":
        if not cfg.DATABASE_URL:
            raise ValueError("SESSION_BACKEND=database requires DATABASE_URL")
        from app.services.db_session_store import DatabaseSessionStore
        return DatabaseSessionStore.from_url(cfg.DATABASE_URL, ttl_seconds=ttl)

    if backend != "memory":
        raise ValueError(f"Unknown SESSION_BACKEND: {cfg.SESSION_BACKEND}")
    logger.warning("Using in-memory session store; sessions are not shared between workers")
    return InMemorySessionStore(ttl_seconds=ttl)


def build_platform_services(cfg: Settings) -> PlatformServices:
    backend = cfg.ADAPTER_BACKEND.lower()

    if backend == "http":
        api = PlatformApi(cfg.PLATFORM_API_URL, cfg.PLATFORM_API_KEY, timeout=cfg.ADAPTER_TIMEOUT_SECONDS)
        return PlatformServices(
            users=HttpUserDirectory(api),
            wallet=HttpWallet(api),
            catalog=HttpCatalog(api),
            betting=HttpBetting(api, currency=cfg.CURRENCY),
            timeout_seconds=cfg.ADAPTER_TIMEOUT_SECONDS,
            on_close=api.aclose,
        )

    if backend != "memory":
        raise ValueError(f"Unknown ADAPTER_BACKEND: {cfg.ADAPTER_BACKEND}")
    users, wallet, catalog = InMemoryUserDirectory(), InMemoryWallet(), InMemoryCatalog()
    seed_demo_data(users, wallet, catalog)
    return PlatformServices(
        users=users,
        wallet=wallet,
        catalog=catalog,
        betting=InMemoryBetting(wallet),
        timeout_seconds=cfg.ADAPTER_TIMEOUT_SECONDS,
    )
