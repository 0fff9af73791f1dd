# app/services/redis_session.py
"""
Redis-based session storage for USSD callbacks.
Survives container restarts and is shared by every worker behind the gateway.
Each record is a JSON blob under ussd_session:<id> whose key expiry matches
expires_at; updates are compare-and-swap via WATCH/MULTI.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from app.core.errors import SessionConflict
from app.services.session_store import BaseSessionStore, Clock, TTL_MINUTES, UssdSession

logger = logging.getLogger(__name__)

KEY_PREFIX = "ussd_session:"


def create_redis_client(redis_url: str) -> redis.Redis:
    """Build an async Redis client with short socket timeouts."""
    # Upstash requires TLS
    if "upstash.io" in redis_url and redis_url.startswith("redis://"):
        redis_url = redis_url.replace("redis://", "rediss://", 1)
        logger.info("Converted Redis URL to SSL for Upstash")

    client = redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=3,
        socket_timeout=2,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    logger.info("Redis session store configured: %s", redis_url.split('@')[-1] if '@' in redis_url else redis_url)
    return client


class RedisSessionStore(BaseSessionStore):
    def __init__(self, client: redis.Redis, ttl_seconds: int = TTL_MINUTES * 60,
                 clock: Optional[Clock] = None, max_retries: int = 3):
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self._client = client
        self.max_retries = max_retries

    @classmethod
    def from_url(cls, redis_url: str, **kwargs: Any) -> "RedisSessionStore":
        return cls(create_redis_client(redis_url), **kwargs)

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    @staticmethod
    def _dump(session: UssdSession) -> str:
        return json.dumps(session.to_dict(), default=str)

    @staticmethod
    def _load(raw: str) -> UssdSession:
        return UssdSession.from_dict(json.loads(raw))

    @staticmethod
    def _pxat(expires_at: datetime) -> int:
        return int(expires_at.timestamp() * 1000)

    async def create(self, session_id: str, phone_number: str, **fields: Any) -> UssdSession:
        session = self._new_session(session_id, phone_number, **fields)
        await self._client.set(self._key(session_id), self._dump(session), pxat=self._pxat(session.expires_at))
        logger.info("Created new session: %s", session_id[:8])
        return session

    async def get(self, session_id: str, include_inactive: bool = False) -> Optional[UssdSession]:
        raw = await self._client.get(self._key(session_id))
        if not raw:
            return None
        session = self._load(raw)
        if not self._visible(session, include_inactive):
            return None
        logger.debug("Loaded session from Redis: %s menu=%s", session_id[:8], session.current_menu)
        return session

    async def update(self, session_id: str, patch: Dict[str, Any],
                     expected_version: Optional[int] = None) -> Optional[UssdSession]:
        key = self._key(session_id)
        async with self._client.pipeline(transaction=True) as pipe:
            for _ in range(self.max_retries):
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if not raw:
                        return None
                    session = self._load(raw)
                    if not session.is_live(self.now()):
                        return None
                    self._check_version(session, expected_version)
                    self._apply_patch(session, patch)
                    self._stamp(session)
                    session.version += 1

                    pipe.multi()
                    pipe.set(key, self._dump(session), pxat=self._pxat(session.expires_at))
                    await pipe.execute()
                    logger.debug("Saved session to Redis: %s menu=%s step=%s",
                                 session_id[:8], session.current_menu, session.step)
                    return session
                except WatchError:
                    logger.debug("Concurrent write on session %s, retrying", session_id[:8])
                    continue
        raise SessionConflict(session_id, expected_version)

    async def end(self, session_id: str) -> None:
        key = self._key(session_id)
        async with self._client.pipeline(transaction=True) as pipe:
            for _ in range(self.max_retries):
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if not raw:
                        return
                    session = self._load(raw)
                    session.is_active = False
                    session.version += 1
                    pipe.multi()
                    pipe.set(key, self._dump(session), pxat=self._pxat(session.expires_at))
                    await pipe.execute()
                    logger.info("Ended session: %s", session_id[:8])
                    return
                except WatchError:
                    continue
        raise SessionConflict(session_id)

    async def sweep_expired(self) -> int:
        """Delete records past expires_at that Redis has not expired yet (clock skew)."""
        now = self.now()
        removed = 0
        async for key in self._client.scan_iter(match=f"{KEY_PREFIX}*", count=200):
            raw = await self._client.get(key)
            if not raw:
                continue
            try:
                session = self._load(raw)
            except (ValueError, TypeError) as e:
                logger.warning("Dropping unreadable session record %s: %s", key, e)
                await self._client.delete(key)
                removed += 1
                continue
            if session.expires_at <= now:
                await self._client.delete(key)
                removed += 1
        if removed:
            logger.info("Swept %d expired sessions from Redis", removed)
        return removed

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
