# app/services/navigation.py
"""
Per-callback working state: a copy of the session plus the navigation stack
and scratch-data helpers the menu handlers use. Nothing here touches the
store; the dispatcher persists turn.to_patch() once the handler returns.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, FrozenSet, Optional, Tuple

from app.core.config import Settings
from app.schemas.betting import User
from app.services.platform import PlatformServices
from app.services.session_store import MAIN_MENU, UssdSession

logger = logging.getLogger(__name__)

# Menu ids
LOGIN = "login"
REGISTER = "register"
HELP = "help"
ACCOUNT_MENU = "account_menu"
BALANCE = "balance"
BET_HISTORY = "bet_history"
ACTIVE_BETS = "active_bets"
BETTING_MENU = "betting_menu"
SPORTS_LIST = "sports_list"
EVENTS_LIST = "events_list"
BET_PLACEMENT = "bet_placement"

INITIAL_STEPS: Dict[str, str] = {
    LOGIN: "phone",
    REGISTER: "phone",
    BET_PLACEMENT: "market",
}

# Menus that only make sense once logged in; "0" with an empty stack lands on the account menu
POST_LOGIN_MENUS = frozenset({
    BALANCE, BET_HISTORY, ACTIVE_BETS, BETTING_MENU, SPORTS_LIST, EVENTS_LIST, BET_PLACEMENT,
})

# Scratch keys owned by each flow, and the menus the flow spans
FLOW_KEYS: Dict[str, Tuple[str, ...]] = {
    "login": ("login_phone",),
    "register": ("register_phone", "register_name", "register_pin"),
    "bet": ("sports", "sport", "events", "event", "markets", "market",
            "selection", "stake", "potential_win", "bet_token"),
}
FLOW_MENUS: Dict[str, FrozenSet[str]] = {
    "login": frozenset({LOGIN}),
    "register": frozenset({REGISTER}),
    "bet": frozenset({SPORTS_LIST, EVENTS_LIST, BET_PLACEMENT}),
}


class Turn:
    """One callback's view of the session."""

    def __init__(self, session: UssdSession, user_input: str, services: PlatformServices,
                 settings: Settings, text: str = ""):
        self.session = copy.deepcopy(session)
        self.input = user_input
        self.text = text
        self.services = services
        self.settings = settings
        self.router = None  # set by MenuRouter.dispatch

    # --- where we are ---
    @property
    def menu(self) -> str:
        return self.session.current_menu

    @property
    def step(self) -> Optional[str]:
        return self.session.step

    @step.setter
    def step(self, value: Optional[str]) -> None:
        self.session.step = value

    @property
    def history(self):
        return self.session.history

    @property
    def is_authenticated(self) -> bool:
        return self.session.user_id is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user_id

    @property
    def first_name(self) -> str:
        parts = (self.session.user_name or "").split()
        return parts[0] if parts else "User"

    async def show(self, error: Optional[str] = None):
        """Render whatever (menu, step) the turn is on now."""
        return await self.router.render(self, error)

    # --- navigation stack ---
    def navigate_to(self, menu: str, step: Optional[str] = None) -> None:
        """Push the current menu and switch to menu at its initial step."""
        self.session.history.append(self.session.current_menu)
        self.session.current_menu = menu
        self.session.step = step if step is not None else INITIAL_STEPS.get(menu)

    def go_back(self) -> str:
        """Pop one menu off the stack; an empty stack lands on the default parent."""
        previous = self.session.history.pop() if self.session.history else None
        if previous is None:
            previous = self.default_parent()
        self.session.current_menu = previous
        self.session.step = INITIAL_STEPS.get(previous)
        return previous

    def unwind_to(self, menu: str) -> None:
        """Pop until menu is current, or push it if it is not on the stack."""
        if menu in self.session.history:
            while self.session.history:
                if self.session.history.pop() == menu:
                    break
            self.session.current_menu = menu
            self.session.step = INITIAL_STEPS.get(menu)
        else:
            self.navigate_to(menu)

    def go_home(self) -> None:
        """Main menu with an empty stack and no scratch; login survives."""
        self.session.current_menu = MAIN_MENU
        self.session.step = None
        self.session.history = []
        self.session.data = {}

    def reset(self) -> None:
        """Back to first contact: main menu, logged out."""
        self.go_home()
        self.session.user_id = None
        self.session.user_name = None

    def default_parent(self) -> str:
        if self.is_authenticated and self.session.current_menu in POST_LOGIN_MENUS:
            return ACCOUNT_MENU
        return MAIN_MENU

    # --- authentication ---
    def sign_in(self, user: User) -> None:
        self.session.user_id = user.id
        self.session.user_name = user.full_name

    def sign_out(self) -> None:
        self.session.user_id = None
        self.session.user_name = None

    # --- scratch data ---
    def get(self, key: str, default: Any = None) -> Any:
        return self.session.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.session.data[key] = value

    def pop(self, key: str) -> Any:
        return self.session.data.pop(key, None)

    def clear_flow(self, flow: str) -> None:
        for key in FLOW_KEYS[flow]:
            self.session.data.pop(key, None)

    def clear_abandoned_flows(self) -> None:
        """Drop the scratch keys of every flow whose menus we are no longer in."""
        for flow, menus in FLOW_MENUS.items():
            if self.session.current_menu not in menus:
                self.clear_flow(flow)

    def to_patch(self) -> Dict[str, Any]:
        s = self.session
        return {
            "current_menu": s.current_menu,
            "step": s.step,
            "data": s.data,
            "history": s.history,
            "user_id": s.user_id,
            "user_name": s.user_name,
        }
