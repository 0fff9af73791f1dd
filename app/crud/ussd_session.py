# app/crud/ussd_session.py

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.ussd_session import UssdSessionRecord
from app.services.session_store import UssdSession

ROW_COLUMNS = (
    "phone_number", "service_code", "network_code", "user_id", "user_name",
    "current_menu", "step", "data", "history", "turn", "last_text",
    "last_response", "version", "is_active", "created_at", "last_activity",
    "expires_at",
)


def to_row(session: UssdSession) -> Dict[str, Any]:
    return {col: copy.deepcopy(getattr(session, col)) for col in ROW_COLUMNS}


def to_session(record: UssdSessionRecord) -> UssdSession:
    values = {col: copy.deepcopy(getattr(record, col)) for col in ROW_COLUMNS}
    return UssdSession.from_dict({"session_id": record.session_id, **values})


async def get_session_record(db: AsyncSession, session_id: str) -> Optional[UssdSessionRecord]:
    return await db.get(UssdSessionRecord, session_id)


async def put_session_record(db: AsyncSession, session: UssdSession) -> None:
    """Insert or overwrite the record for session.session_id."""
    await db.merge(UssdSessionRecord(session_id=session.session_id, **to_row(session)))
    await db.commit()


async def swap_session_record(db: AsyncSession, session: UssdSession, expected_version: int) -> bool:
    """Write session only if the stored version is still expected_version."""
    stmt = (
        sa.update(UssdSessionRecord)
        .where(
            UssdSessionRecord.session_id == session.session_id,
            UssdSessionRecord.version == expected_version,
        )
        .values(**to_row(session))
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    if res.rowcount != 1:
        await db.rollback()
        return False
    await db.commit()
    return True


async def deactivate_session_record(db: AsyncSession, session_id: str) -> bool:
    stmt = (
        sa.update(UssdSessionRecord)
        .where(UssdSessionRecord.session_id == session_id)
        .values(is_active=False, version=UssdSessionRecord.version + 1)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    await db.commit()
    return res.rowcount > 0


async def delete_expired_records(db: AsyncSession, now: datetime) -> int:
    stmt = sa.delete(UssdSessionRecord).where(UssdSessionRecord.expires_at <= now)
    res = await db.execute(stmt)
    await db.commit()
    return res.rowcount or 0
