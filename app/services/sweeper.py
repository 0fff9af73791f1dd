# app/services/sweeper.py
import asyncio
import logging
from typing import Optional

from app.core.errors import ErrorSeverity, log_error
from app.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Background task deleting sessions whose expiry has passed."""

    def __init__(self, store: SessionStore, interval_seconds: float = 60):
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        try:
            return await self.store.sweep_expired()
        except Exception as e:
            log_error(e, {"component": "session_sweeper"}, ErrorSeverity.LOW)
            return 0

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("Session sweeper started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")
