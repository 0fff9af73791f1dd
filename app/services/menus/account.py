# app/services/menus/account.py
import logging
from typing import Optional

from app.core.errors import ErrorSeverity, ServiceUnavailable, StateInconsistency, log_error
from app.services.menus.router import MenuRouter
from app.services.menus.texts import (
    ACCOUNT_OPTIONS,
    FAREWELL,
    INVALID_OPTION,
    TRY_LATER,
    back_footer,
    menu_text,
)
from app.services.navigation import ACCOUNT_MENU, BALANCE, BET_HISTORY, BETTING_MENU, HELP, Turn
from app.services.response_encoder import Reply
from app.utils.money import format_money

logger = logging.getLogger(__name__)

router = MenuRouter()

HISTORY_LIMIT = 5


def require_user(turn: Turn) -> str:
    if not turn.is_authenticated:
        raise StateInconsistency(f"{turn.menu} requires login")
    return turn.user_id


@router.screen(ACCOUNT_MENU)
async def account_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    require_user(turn)
    return Reply(menu_text(f"Welcome {turn.first_name}!", ACCOUNT_OPTIONS, error))


@router.on(ACCOUNT_MENU, handles_back=True)
async def account_input(turn: Turn) -> Reply:
    require_user(turn)
    targets = {"1": BALANCE, "2": BETTING_MENU, "3": BET_HISTORY, "4": HELP}
    if turn.input == "0":
        logger.info("User %s logged out", turn.user_id)
        turn.sign_out()
        return Reply(FAREWELL, end=True)
    if turn.input in targets:
        turn.navigate_to(targets[turn.input])
        return await turn.show()
    return await turn.show(INVALID_OPTION)


@router.screen(BALANCE)
async def balance_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    user_id = require_user(turn)
    footer = back_footer("Back to Account Menu")
    try:
        balance = await turn.services.balance(user_id)
    except ServiceUnavailable as e:
        log_error(e, {"component": "balance"}, ErrorSeverity.MEDIUM)
        return Reply(f"Unable to retrieve balance.\n{TRY_LATER}\n\n{footer}")

    body = (f"Balance: {format_money(balance, turn.settings.CURRENCY_SYMBOL)}\n\n"
            f"To deposit funds, please use our website or mobile app.\n\n{footer}")
    return Reply(menu_text("ACCOUNT BALANCE", body, error))


def bet_lines(bets, symbol: str, describe) -> str:
    return "\n".join(f"{i}. {describe(bet, format_money(bet.stake, symbol))}"
                     for i, bet in enumerate(bets, start=1))


@router.screen(BET_HISTORY)
async def bet_history_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    user_id = require_user(turn)
    footer = back_footer()
    try:
        bets = await turn.services.bets(user_id, limit=HISTORY_LIMIT)
    except ServiceUnavailable as e:
        log_error(e, {"component": "bet_history"}, ErrorSeverity.MEDIUM)
        return Reply(f"Unable to retrieve bet history.\n{TRY_LATER}\n\n{footer}")

    if not bets:
        return Reply(menu_text("BET HISTORY", f"No bets found.\n\n{footer}", error))
    lines = bet_lines(bets[:HISTORY_LIMIT], turn.settings.CURRENCY_SYMBOL,
                      lambda bet, stake: f"{stake} - {bet.status.upper()}")
    return Reply(menu_text(f"BET HISTORY (Last {HISTORY_LIMIT})", f"{lines}\n\n{footer}", error))
