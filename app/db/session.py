# app/db/session.py

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


# 1) Declarative Base: all models inherit from this
class Base(DeclarativeBase):
    pass


# 2) Engine: one per app, async and resilient
def create_engine(database_url: str, **kwargs) -> AsyncEngine:
    return create_async_engine(
        database_url,
        pool_pre_ping=True,   # avoids stale connection errors
        **kwargs,
    )


# 3) Session factory: creates short-lived sessions per operation
def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        expire_on_commit=False,  # keep objects usable after commit
        class_=AsyncSession,
    )
