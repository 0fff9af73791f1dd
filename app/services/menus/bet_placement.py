# app/services/menus/bet_placement.py
"""
Single-selection bet slip: market -> selection -> stake -> confirm.

A bet is placed only on an explicit "1" at the confirm step, with the
bet_token minted when the stake was accepted as its idempotency key. A failed
placement stays on confirm; pressing "1" again reuses the same token so a
request that did reach the platform is not placed twice.
"""
import logging
import uuid
from decimal import Decimal
from typing import List, Optional

from app.core.errors import ErrorSeverity, ServiceUnavailable, StateInconsistency, log_error
from app.schemas.betting import BetSelection, Event, Market, Selection
from app.services.menus.account import require_user
from app.services.menus.router import MenuRouter
from app.services.menus.texts import HOME_FOOTER, INVALID_OPTION, TRY_LATER, back_footer, menu_text, pick
from app.services.navigation import BET_PLACEMENT, BETTING_MENU, Turn
from app.services.response_encoder import Reply
from app.utils.money import format_money, parse_amount, quantize

logger = logging.getLogger(__name__)

router = MenuRouter()

MAX_MARKETS = 3
MAIN_MARKETS = ("Match Winner", "1X2", "Moneyline")

INVALID_STAKE = "Invalid stake amount."
INSUFFICIENT = "Insufficient balance."
PLACEMENT_FAILED = f"Bet placement failed.\n{TRY_LATER}"
CONFIRM_OPTIONS = f"1. Confirm Bet\n2. Change Stake\n0. Cancel\n{HOME_FOOTER}"


def is_main_market(market: Market) -> bool:
    return any(name in market.name for name in MAIN_MARKETS)


def offered_markets(event: Event) -> List[Market]:
    """Main markets first, then the rest, capped for the handset screen."""
    ranked = sorted(event.markets, key=lambda m: not is_main_market(m))
    return [m for m in ranked if m.selections][:MAX_MARKETS]


def _load(turn: Turn, key: str, model):
    raw = turn.get(key)
    if raw is None:
        raise StateInconsistency(f"bet slip missing {key}")
    return model.model_validate(raw)


def _money(turn: Turn, amount) -> str:
    return format_money(amount, turn.settings.CURRENCY_SYMBOL)


# --- market ---

@router.screen(BET_PLACEMENT, "market")
async def market_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    require_user(turn)
    event = _load(turn, "event", Event)
    markets = offered_markets(event)
    footer = back_footer("Back to Events")
    if not markets:
        return Reply(f"No betting markets available for this event.\n\n{footer}")

    turn.set("markets", [m.model_dump(mode="json") for m in markets])
    listing = "\n".join(f"{i}. {m.name}" for i, m in enumerate(markets, start=1))
    return Reply(menu_text(event.title, f"SELECT MARKET:\n{listing}\n\n{footer}", error))


@router.on(BET_PLACEMENT, "market")
async def market_input(turn: Turn) -> Reply:
    markets = turn.get("markets") or []
    index = pick(turn.input, markets)
    if index is None:
        return await turn.show(INVALID_OPTION)
    turn.set("market", markets[index])
    turn.step = "selection"
    return await turn.show()


# --- selection ---

@router.screen(BET_PLACEMENT, "selection")
async def selection_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    event = _load(turn, "event", Event)
    market = _load(turn, "market", Market)
    footer = back_footer("Back to Markets")
    if not market.selections:
        return Reply(f"No betting options available.\n\n{footer}")

    listing = "\n".join(f"{i}. {s.name} @ {s.odds}" for i, s in enumerate(market.selections, start=1))
    body = f"{market.name}\n\n{listing}\n\n{footer}"
    return Reply(menu_text(event.title, body, error))


@router.on(BET_PLACEMENT, "selection", handles_back=True)
async def selection_input(turn: Turn) -> Reply:
    if turn.input == "0":
        turn.pop("market")
        turn.step = "market"
        return await turn.show()

    market = _load(turn, "market", Market)
    index = pick(turn.input, market.selections)
    if index is None:
        return await turn.show(INVALID_OPTION)
    turn.set("selection", market.selections[index].model_dump(mode="json"))
    turn.step = "stake"
    return await turn.show()


# --- stake ---

@router.screen(BET_PLACEMENT, "stake")
async def stake_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    user_id = require_user(turn)
    selection = _load(turn, "selection", Selection)
    try:
        balance_line = f"Your Balance: {_money(turn, await turn.services.balance(user_id))}"
    except ServiceUnavailable as e:
        log_error(e, {"component": "bet_placement", "step": "stake"}, ErrorSeverity.LOW)
        balance_line = "Balance unavailable"

    body = (f"{selection.name}\nOdds: {selection.odds}\n\n{balance_line}\n"
            f"Enter stake amount:\n\n{back_footer('Back to Selections')}")
    return Reply(menu_text("PLACE BET", body, error))


@router.on(BET_PLACEMENT, "stake", handles_back=True)
async def stake_input(turn: Turn) -> Reply:
    if turn.input == "0":
        turn.pop("selection")
        turn.step = "selection"
        return await turn.show()

    user_id = require_user(turn)
    selection = _load(turn, "selection", Selection)
    minimum = turn.settings.MIN_STAKE

    amount = parse_amount(turn.input)
    if amount is None or amount <= 0:
        return await turn.show(INVALID_STAKE)
    stake = quantize(amount)
    if stake < minimum:
        return await turn.show(f"Minimum stake is {_money(turn, minimum)}.")

    try:
        balance = await turn.services.balance(user_id)
    except ServiceUnavailable as e:
        log_error(e, {"component": "bet_placement", "step": "stake"}, ErrorSeverity.MEDIUM)
        return await turn.show(f"Unable to retrieve balance.\n{TRY_LATER}")
    if stake > balance:
        return await turn.show(INSUFFICIENT)

    turn.set("stake", str(stake))
    turn.set("potential_win", str(quantize(stake * selection.odds)))
    turn.set("bet_token", uuid.uuid4().hex)
    turn.step = "confirm"
    return await turn.show()


# --- confirm ---

@router.screen(BET_PLACEMENT, "confirm")
async def confirm_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    selection = _load(turn, "selection", Selection)
    stake = Decimal(turn.get("stake"))
    potential_win = Decimal(turn.get("potential_win"))
    body = (f"{selection.name}\nOdds: {selection.odds}\nStake: {_money(turn, stake)}\n"
            f"Potential Win: {_money(turn, potential_win)}\n\n{CONFIRM_OPTIONS}")
    return Reply(menu_text("CONFIRM BET", body, error))


@router.on(BET_PLACEMENT, "confirm", handles_back=True)
async def confirm_input(turn: Turn) -> Reply:
    if turn.input == "0":
        turn.unwind_to(BETTING_MENU)
        logger.info("Bet slip cancelled for user %s", turn.user_id)
        return await turn.show()

    if turn.input == "2":
        for key in ("stake", "potential_win", "bet_token"):
            turn.pop(key)
        turn.step = "stake"
        return await turn.show()

    if turn.input != "1":
        return await turn.show(INVALID_OPTION)

    user_id = require_user(turn)
    event = _load(turn, "event", Event)
    market = _load(turn, "market", Market)
    selection = _load(turn, "selection", Selection)
    stake = Decimal(turn.get("stake"))
    token = turn.get("bet_token") or uuid.uuid4().hex
    turn.set("bet_token", token)

    slip = BetSelection(
        event_id=event.event_id,
        market_id=market.market_id,
        selection_id=selection.selection_id,
        odds=selection.odds,
        event_name=event.title,
        market_name=market.name,
        selection_name=selection.name,
        start_time=event.start_time,
    )
    try:
        receipt = await turn.services.place_bet(user_id, slip, stake, idempotency_key=token)
    except ServiceUnavailable as e:
        log_error(e, {"component": "bet_placement", "step": "confirm", "token": token[:8]}, ErrorSeverity.HIGH)
        receipt = None
    if receipt is None:
        return await turn.show(PLACEMENT_FAILED)

    turn.clear_flow("bet")
    logger.info("Bet %s placed for user %s", receipt.reference, user_id)
    return Reply(
        f"BET PLACED SUCCESSFULLY!\nBet ID: {receipt.reference}\n"
        f"Stake: {_money(turn, receipt.stake)}\nPotential Win: {_money(turn, receipt.potential_win)}\n\n"
        f"Good luck!",
        end=True,
    )
