# app/services/session_store.py
"""
USSD session records and the storage contract shared by every backend.

A session is visible only while it is active and unexpired. An ended session
stays readable through get(..., include_inactive=True) until it expires, so
its final response can be replayed. Every mutation stamps last_activity and
pushes expires_at out to last_activity + TTL, so the expiry only ever moves
forward. Backends: in-memory (this module), Redis
(app/services/redis_session.py) and SQL (app/crud/ussd_session.py).
"""
from __future__ import annotations

import asyncio
import copy
import logging
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol

from app.core.errors import SessionConflict

logger = logging.getLogger(__name__)

TTL_MINUTES = 5  # session auto-expires after this much inactivity
MAIN_MENU = "main_menu"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite and some drivers hand back naive datetimes; we always store UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class UssdSession:
    session_id: str
    phone_number: str
    current_menu: str = MAIN_MENU
    step: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    history: List[str] = field(default_factory=list)
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    service_code: Optional[str] = None
    network_code: Optional[str] = None
    is_active: bool = True
    turn: int = 0
    last_text: Optional[str] = None
    last_response: Optional[str] = None
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)
    expires_at: datetime = field(default_factory=lambda: utcnow() + timedelta(minutes=TTL_MINUTES))

    def is_live(self, now: datetime) -> bool:
        return self.is_active and now < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict for storage."""
        result = asdict(self)
        for key in ("created_at", "last_activity", "expires_at"):
            result[key] = getattr(self, key).isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UssdSession":
        data = dict(data)
        for key in ("created_at", "last_activity", "expires_at"):
            if isinstance(data.get(key), str):
                data[key] = datetime.fromisoformat(data[key])
            if isinstance(data.get(key), datetime):
                data[key] = _as_utc(data[key])
        return cls(**data)


# Fields a handler turn may change; everything else is owned by the store.
PATCHABLE_FIELDS = frozenset({
    "current_menu", "step", "data", "history", "user_id", "user_name",
    "turn", "last_text", "last_response", "phone_number",
})


class SessionStore(Protocol):
    """Storage contract for USSD sessions."""

    async def create(self, session_id: str, phone_number: str, **fields: Any) -> UssdSession: ...

    async def get(self, session_id: str, include_inactive: bool = False) -> Optional[UssdSession]: ...

    async def update(self, session_id: str, patch: Dict[str, Any],
                     expected_version: Optional[int] = None) -> Optional[UssdSession]: ...

    async def set_scratch(self, session_id: str, key: str, value: Any) -> Optional[UssdSession]: ...

    async def get_scratch(self, session_id: str, key: str) -> Any: ...

    async def end(self, session_id: str) -> None: ...

    async def sweep_expired(self) -> int: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Counter = Counter()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] <= 0:
                del self._holders[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


class BaseSessionStore:
    """TTL stamping and patch rules shared by all backends."""

    def __init__(self, ttl_seconds: int = TTL_MINUTES * 60, clock: Optional[Clock] = None):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    def _stamp(self, session: UssdSession) -> None:
        now = self.now()
        if now <= session.last_activity:
            now = session.last_activity + timedelta(microseconds=1)
        session.last_activity = now
        session.expires_at = now + self.ttl

    def _new_session(self, session_id: str, phone_number: str, **fields: Any) -> UssdSession:
        now = self.now()
        session = UssdSession(
            session_id=session_id,
            phone_number=phone_number,
            created_at=now,
            last_activity=now,
            expires_at=now + self.ttl,
            **fields,
        )
        return session

    @staticmethod
    def _apply_patch(session: UssdSession, patch: Dict[str, Any]) -> None:
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot patch session fields: {sorted(unknown)}")
        for key, value in patch.items():
            setattr(session, key, copy.deepcopy(value))

    def _visible(self, session: UssdSession, include_inactive: bool) -> bool:
        if include_inactive:
            return self.now() < session.expires_at
        return session.is_live(self.now())

    def _check_version(self, session: UssdSession, expected_version: Optional[int]) -> None:
        if expected_version is not None and session.version != expected_version:
            raise SessionConflict(session.session_id, expected_version, session.version)

    async def set_scratch(self, session_id: str, key: str, value: Any) -> Optional[UssdSession]:
        session = await self.get(session_id)
        if session is None:
            return None
        data = dict(session.data)
        data[key] = value
        return await self.update(session_id, {"data": data}, expected_version=session.version)

    async def get_scratch(self, session_id: str, key: str) -> Any:
        session = await self.get(session_id)
        if session is None:
            return None
        return session.data.get(key)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemorySessionStore(BaseSessionStore):
    """Process-local store for development and tests."""

    def __init__(self, ttl_seconds: int = TTL_MINUTES * 60, clock: Optional[Clock] = None):
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self._records: Dict[str, UssdSession] = {}
        self._locks = KeyedLock()

    async def create(self, session_id: str, phone_number: str, **fields: Any) -> UssdSession:
        async with self._locks.hold(session_id):
            session = self._new_session(session_id, phone_number, **fields)
            self._records[session_id] = copy.deepcopy(session)
            logger.info("Created new session: %s", session_id[:8])
            return session

    async def get(self, session_id: str, include_inactive: bool = False) -> Optional[UssdSession]:
        session = self._records.get(session_id)
        if session is None or not self._visible(session, include_inactive):
            return None
        return copy.deepcopy(session)

    async def update(self, session_id: str, patch: Dict[str, Any],
                     expected_version: Optional[int] = None) -> Optional[UssdSession]:
        async with self._locks.hold(session_id):
            stored = self._records.get(session_id)
            if stored is None or not stored.is_live(self.now()):
                return None
            self._check_version(stored, expected_version)
            session = copy.deepcopy(stored)
            self._apply_patch(session, patch)
            self._stamp(session)
            session.version += 1
            self._records[session_id] = session
            logger.debug("Saved session: %s menu=%s step=%s", session_id[:8], session.current_menu, session.step)
            return copy.deepcopy(session)

    async def end(self, session_id: str) -> None:
        async with self._locks.hold(session_id):
            stored = self._records.get(session_id)
            if stored is not None:
                stored.is_active = False
                stored.version += 1
                logger.info("Ended session: %s", session_id[:8])

    async def sweep_expired(self) -> int:
        now = self.now()
        expired = [k for k, s in self._records.items() if s.expires_at <= now]
        for k in expired:
            self._records.pop(k, None)
        if expired:
            logger.info("Swept %d expired sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)
