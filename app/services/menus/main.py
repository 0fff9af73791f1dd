# app/services/menus/main.py
from typing import Optional

from app.services.menus.router import MenuRouter
from app.services.menus.texts import (
    FAREWELL,
    HELP_OPTIONS,
    HELP_TITLE,
    INVALID_OPTION,
    MAIN_MENU_OPTIONS,
    MAIN_MENU_TITLE,
    menu_text,
)
from app.services.navigation import HELP, LOGIN, REGISTER, Turn
from app.services.response_encoder import Reply
from app.services.session_store import MAIN_MENU

router = MenuRouter()

HELP_TOPICS = {
    "1": ("how_to_bet", "HOW TO BET\n1. Login to your account\n2. Go to Betting Menu\n3. Select a sport\n"
                        "4. Choose an event\n5. Enter stake amount\n6. Confirm bet"),
    "2": ("account", "ACCOUNT HELP\n- Register with phone number\n- Create 4-digit PIN\n- Check balance anytime\n"
                     "- View bet history\n- Deposit via website/app"),
    "3": ("navigation", "NAVIGATION HELP\n- Enter numbers to select options\n- Press 0 to go back\n"
                        "- Press * for main menu\n- Session expires after 5 minutes"),
    "4": ("support", "SUPPORT\nFor assistance:\n- Call: +1-800-BET-HELP\n- Email: support@betting.com\n"
                     "- Website: www.betting.com"),
}
TOPIC_TEXT = {step: text for step, text in HELP_TOPICS.values()}
TOPIC_FOOTER = "0. Back to Help\n*. Main Menu"


@router.screen(MAIN_MENU)
async def main_menu_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    return Reply(menu_text(MAIN_MENU_TITLE, MAIN_MENU_OPTIONS, error))


@router.on(MAIN_MENU, handles_back=True)
async def main_menu_input(turn: Turn) -> Reply:
    targets = {"1": LOGIN, "2": REGISTER, "3": HELP}
    if turn.input == "0":
        return Reply(FAREWELL, end=True)
    if turn.input in targets:
        turn.navigate_to(targets[turn.input])
        return await turn.show()
    return await turn.show(INVALID_OPTION)


@router.screen(HELP)
async def help_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    if turn.step in TOPIC_TEXT:
        text = TOPIC_TEXT[turn.step]
        if error:
            title, _, body = text.partition("\n")
            text = f"{title}\n{error}\n\n{body}"
        return Reply(f"{text}\n\n{TOPIC_FOOTER}")
    return Reply(menu_text(HELP_TITLE, HELP_OPTIONS, error))


@router.on(HELP)
async def help_input(turn: Turn) -> Reply:
    if turn.input in HELP_TOPICS:
        turn.step = HELP_TOPICS[turn.input][0]
        return await turn.show()
    return await turn.show(INVALID_OPTION)


async def help_topic_input(turn: Turn) -> Reply:
    if turn.input == "0":
        turn.step = None
        return await turn.show()
    return await turn.show(INVALID_OPTION)


for _step in TOPIC_TEXT:
    router.on(HELP, _step, handles_back=True)(help_topic_input)
