# app/db/base.py

"""
This file imports all the ORM models so Alembic can discover them.
Whenever you add a new model, import it here.
"""
from sqlalchemy.ext.asyncio import AsyncEngine

from app.db.models.ussd_session import UssdSessionRecord  # noqa: F401
from app.db.session import Base


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database by creating all tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
