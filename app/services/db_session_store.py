# app/services/db_session_store.py
"""
SQL-backed session storage (Postgres in production, SQLite in tests).
Updates are compare-and-swap on the version column.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.errors import SessionConflict
from app.crud.ussd_session import (
    deactivate_session_record,
    delete_expired_records,
    get_session_record,
    put_session_record,
    swap_session_record,
    to_session,
)
from app.db.session import create_engine, create_sessionmaker
from app.services.session_store import BaseSessionStore, Clock, TTL_MINUTES, UssdSession

logger = logging.getLogger(__name__)


class DatabaseSessionStore(BaseSessionStore):
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession],
                 ttl_seconds: int = TTL_MINUTES * 60, clock: Optional[Clock] = None,
                 engine: Optional[AsyncEngine] = None):
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self._sessionmaker = sessionmaker
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str, **kwargs: Any) -> "DatabaseSessionStore":
        engine = create_engine(database_url)
        return cls(create_sessionmaker(engine), engine=engine, **kwargs)

    async def create(self, session_id: str, phone_number: str, **fields: Any) -> UssdSession:
        session = self._new_session(session_id, phone_number, **fields)
        async with self._sessionmaker() as db:
            await put_session_record(db, session)
        logger.info("Created new session: %s", session_id[:8])
        return session

    async def get(self, session_id: str, include_inactive: bool = False) -> Optional[UssdSession]:
        async with self._sessionmaker() as db:
            record = await get_session_record(db, session_id)
            if record is None:
                return None
            session = to_session(record)
        if not self._visible(session, include_inactive):
            return None
        return session

    async def update(self, session_id: str, patch: Dict[str, Any],
                     expected_version: Optional[int] = None) -> Optional[UssdSession]:
        async with self._sessionmaker() as db:
            record = await get_session_record(db, session_id)
            if record is None:
                return None
            session = to_session(record)
            if not session.is_live(self.now()):
                return None
            self._check_version(session, expected_version)

            read_version = session.version
            self._apply_patch(session, patch)
            self._stamp(session)
            session.version = read_version + 1

            if not await swap_session_record(db, session, read_version):
                raise SessionConflict(session_id, read_version)
        logger.debug("Saved session: %s menu=%s step=%s", session_id[:8], session.current_menu, session.step)
        return session

    async def end(self, session_id: str) -> None:
        async with self._sessionmaker() as db:
            if await deactivate_session_record(db, session_id):
                logger.info("Ended session: %s", session_id[:8])

    async def sweep_expired(self) -> int:
        async with self._sessionmaker() as db:
            removed = await delete_expired_records(db, self.now())
        if removed:
            logger.info("Swept %d expired sessions", removed)
        return removed

    async def ping(self) -> bool:
        async with self._sessionmaker() as db:
            await db.execute(sa.text("SELECT 1"))
        return True

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
