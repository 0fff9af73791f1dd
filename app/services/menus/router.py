# app/services/menus/router.py
"""
Table dispatch for menu handlers, keyed by (menu, step).

Each menu module declares its own MenuRouter and registers two kinds of
callables, FastAPI-style:

    @router.screen("balance")             # what the menu shows on arrival
    async def balance_screen(turn, error=None) -> Reply: ...

    @router.on("balance")                 # what a keypress does there
    async def balance_input(turn) -> Reply: ...

Lookups try (menu, step) first and fall back to (menu, None). A bare "0" is
handled here as "pop one menu" unless the handler was registered with
handles_back=True.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Optional, Set, Tuple

from app.core.errors import StateInconsistency
from app.services.menus.texts import INVALID_OPTION
from app.services.navigation import Turn
from app.services.response_encoder import Reply

logger = logging.getLogger(__name__)

BACK_KEY = "0"

Key = Tuple[str, Optional[str]]
Screen = Callable[..., Awaitable[Reply]]
Handler = Callable[[Turn], Awaitable[Reply]]


class MenuRouter:
    def __init__(self):
        self.screens: Dict[Key, Screen] = {}
        self.handlers: Dict[Key, Handler] = {}
        self.own_back: Set[Key] = set()

    def screen(self, menu: str, step: Optional[str] = None):
        def decorator(fn: Screen) -> Screen:
            self.screens[(menu, step)] = fn
            return fn
        return decorator

    def on(self, menu: str, step: Optional[str] = None, handles_back: bool = False):
        def decorator(fn: Handler) -> Handler:
            self.handlers[(menu, step)] = fn
            if handles_back:
                self.own_back.add((menu, step))
            return fn
        return decorator

    def include_router(self, other: "MenuRouter") -> None:
        self.screens.update(other.screens)
        self.handlers.update(other.handlers)
        self.own_back |= other.own_back

    @staticmethod
    def _lookup(table: dict, menu: str, step: Optional[str]):
        return table.get((menu, step)) or table.get((menu, None))

    def knows(self, menu: str) -> bool:
        return any(m == menu for m, _ in self.screens)

    def handles_back(self, menu: str, step: Optional[str]) -> bool:
        if (menu, step) in self.handlers:
            return (menu, step) in self.own_back
        return (menu, None) in self.own_back

    async def render(self, turn: Turn, error: Optional[str] = None) -> Reply:
        """Show the current (menu, step) screen, optionally with an error line."""
        turn.router = self
        screen = self._lookup(self.screens, turn.menu, turn.step)
        if screen is None:
            raise StateInconsistency(f"no screen for {turn.menu}/{turn.step}")
        return await screen(turn, error)

    async def dispatch(self, turn: Turn) -> Reply:
        """Apply turn.input to the current menu; unknown state falls back to the main menu."""
        turn.router = self
        try:
            return await self._dispatch(turn)
        except StateInconsistency as e:
            logger.warning("Resetting session %s to main menu: %s", turn.session.session_id[:8], e)
            turn.go_home()
            return await self.render(turn)

    async def _dispatch(self, turn: Turn) -> Reply:
        if not self.knows(turn.menu):
            raise StateInconsistency(f"unknown menu {turn.menu!r}")

        if turn.input == "":
            return await self.render(turn)

        if turn.input == BACK_KEY and not self.handles_back(turn.menu, turn.step):
            landed = turn.go_back()
            logger.debug("Back to %s", landed)
            return await self.render(turn)

        handler = self._lookup(self.handlers, turn.menu, turn.step)
        if handler is None:
            # Display-only screens
            return await self.render(turn, INVALID_OPTION)
        return await handler(turn)
