#!/usr/bin/env python3
"""
Create the ussd_sessions table without running Alembic (local SQLite setups).
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the app directory to the path
sys.path.insert(0, str(Path(__file__).parent))


async def init_database(database_url: str) -> bool:
    from app.db.base import init_db
    from app.db.session import create_engine

    if database_url.startswith("sqlite"):
        Path("data").mkdir(exist_ok=True)

    engine = create_engine(database_url)
    try:
        await init_db(engine)
    finally:
        await engine.dispose()
    print(f"Session table ready at {database_url}")
    return True


if __name__ == "__main__":
    url = os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./data/ussd.db")
    if not asyncio.run(init_database(url)):
        sys.exit(1)
