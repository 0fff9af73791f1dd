# app/services/menus/betting.py
"""Betting menu, sport and event pickers, and the active-bets screen."""
import logging
from typing import List, Optional

from app.core.errors import ErrorSeverity, ServiceUnavailable, StateInconsistency, log_error
from app.schemas.betting import Event, Sport
from app.services.menus.account import bet_lines, require_user
from app.services.menus.router import MenuRouter
from app.services.menus.texts import (
    BETTING_MENU_OPTIONS,
    BETTING_MENU_TITLE,
    INVALID_OPTION,
    TRY_LATER,
    back_footer,
    menu_text,
    numbered,
    pick,
)
from app.services.navigation import (
    ACTIVE_BETS,
    BET_HISTORY,
    BET_PLACEMENT,
    BETTING_MENU,
    EVENTS_LIST,
    SPORTS_LIST,
    Turn,
)
from app.services.response_encoder import Reply

logger = logging.getLogger(__name__)

router = MenuRouter()

MAX_SPORTS = 8
MAX_EVENTS = 6
ACTIVE_LIMIT = 5


@router.screen(BETTING_MENU)
async def betting_menu_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    require_user(turn)
    return Reply(menu_text(BETTING_MENU_TITLE, BETTING_MENU_OPTIONS, error))


@router.on(BETTING_MENU)
async def betting_menu_input(turn: Turn) -> Reply:
    targets = {"1": SPORTS_LIST, "2": ACTIVE_BETS, "3": BET_HISTORY}
    if turn.input in targets:
        turn.navigate_to(targets[turn.input])
        return await turn.show()
    return await turn.show(INVALID_OPTION)


# --- sports ---

def sports_text(sports: List[Sport], error: Optional[str] = None) -> str:
    body = numbered(s.title for s in sports) + "\n\n" + back_footer("Back to Betting Menu")
    return menu_text("SELECT SPORT", body, error)


@router.screen(SPORTS_LIST)
async def sports_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    require_user(turn)
    footer = back_footer("Back to Betting Menu")
    try:
        sports = (await turn.services.sports())[:MAX_SPORTS]
    except ServiceUnavailable as e:
        log_error(e, {"component": "sports_list"}, ErrorSeverity.MEDIUM)
        return Reply(f"Unable to load sports.\n{TRY_LATER}\n\n{footer}")

    if not sports:
        return Reply(f"No sports available at the moment.\n\n{footer}")
    turn.set("sports", [s.model_dump(mode="json") for s in sports])
    return Reply(sports_text(sports, error))


@router.on(SPORTS_LIST)
async def sports_input(turn: Turn) -> Reply:
    cached = turn.get("sports")
    if not cached:
        return await turn.show()
    sports = [Sport.model_validate(s) for s in cached]

    index = pick(turn.input, sports)
    if index is None:
        return Reply(sports_text(sports, INVALID_OPTION))

    turn.set("sport", cached[index])
    turn.pop("events")
    turn.navigate_to(EVENTS_LIST)
    return await turn.show()


# --- events ---

def events_text(sport: Sport, events: List[Event], error: Optional[str] = None, with_times: bool = True) -> str:
    if with_times:
        lines = [f"{i}. {e.title}\n   {e.start_time:%d %b %H:%M}" for i, e in enumerate(events, start=1)]
        listing = "\n".join(lines)
    else:
        listing = numbered(e.title for e in events)
    return menu_text(sport.title.upper(), f"{listing}\n\n{back_footer('Back to Sports')}", error)


def current_sport(turn: Turn) -> Sport:
    raw = turn.get("sport")
    if not raw:
        raise StateInconsistency("events list without a chosen sport")
    return Sport.model_validate(raw)


@router.screen(EVENTS_LIST)
async def events_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    require_user(turn)
    sport = current_sport(turn)
    footer = back_footer("Back to Sports")
    try:
        events = (await turn.services.events(sport.key))[:MAX_EVENTS]
    except ServiceUnavailable as e:
        log_error(e, {"component": "events_list", "sport": sport.key}, ErrorSeverity.MEDIUM)
        return Reply(f"Unable to load events.\n{TRY_LATER}\n\n{footer}")

    if not events:
        return Reply(f"{sport.title.upper()}\nNo events available.\n\n{footer}")
    turn.set("events", [e.model_dump(mode="json") for e in events])
    return Reply(events_text(sport, events, error))


@router.on(EVENTS_LIST)
async def events_input(turn: Turn) -> Reply:
    sport = current_sport(turn)
    cached = turn.get("events")
    if not cached:
        return await turn.show()
    events = [Event.model_validate(e) for e in cached]

    index = pick(turn.input, events)
    if index is None:
        return Reply(events_text(sport, events, INVALID_OPTION, with_times=False))

    turn.set("event", cached[index])
    for key in ("markets", "market", "selection", "stake", "potential_win", "bet_token"):
        turn.pop(key)
    turn.navigate_to(BET_PLACEMENT)
    return await turn.show()


# --- active bets ---

@router.screen(ACTIVE_BETS)
async def active_bets_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    user_id = require_user(turn)
    footer = back_footer("Back to Betting Menu")
    try:
        bets = await turn.services.bets(user_id, status="pending", limit=ACTIVE_LIMIT)
    except ServiceUnavailable as e:
        log_error(e, {"component": "active_bets"}, ErrorSeverity.MEDIUM)
        return Reply(f"Unable to load active bets.\n{TRY_LATER}\n\n{footer}")

    if not bets:
        return Reply(menu_text("ACTIVE BETS", f"No active bets found.\n\n{footer}", error))
    lines = bet_lines(bets[:ACTIVE_LIMIT], turn.settings.CURRENCY_SYMBOL,
                      lambda bet, stake: f"{stake} on {bet.selection_name}")
    return Reply(menu_text("ACTIVE BETS", f"{lines}\n\n{footer}", error))
