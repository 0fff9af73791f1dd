# app/services/menus/texts.py
"""Screen text shared across menus. Keep lines short: many handsets wrap at ~20 chars."""
from typing import Iterable, Optional

INVALID_OPTION = "Invalid option. Please try again."
TRY_LATER = "Please try again later."
FAREWELL = "Thank you for using our betting service!"

HOME_FOOTER = "*. Main Menu"
BACK_TO_MAIN = "0. Back to main menu"

MAIN_MENU_TITLE = "WELCOME TO BETTING PLATFORM"
MAIN_MENU_OPTIONS = "1. Login\n2. Register\n3. Help\n0. Exit"

ACCOUNT_OPTIONS = "1. Check Balance\n2. Betting Menu\n3. Bet History\n4. Help\n0. Logout\n*. Main Menu"

BETTING_MENU_TITLE = "BETTING MENU"
BETTING_MENU_OPTIONS = "1. View Sports\n2. My Active Bets\n3. Bet History\n\n0. Back to Account\n*. Main Menu"

HELP_TITLE = "HELP MENU"
HELP_OPTIONS = "1. How to Bet\n2. Account Help\n3. Navigation Help\n4. Contact Support\n0. Back\n*. Main Menu"


def menu_text(title: str, body: str, error: Optional[str] = None) -> str:
    """Title, optional error line, then the options."""
    if error:
        return f"{title}\n{error}\n\n{body}"
    return f"{title}\n{body}"


def prompt_text(title: str, prompt: str, error: Optional[str] = None, footer: str = BACK_TO_MAIN) -> str:
    lines = [title]
    if error:
        lines.append(error)
    lines.append(prompt)
    return "\n".join(lines) + f"\n\n{footer}"


def numbered(items: Iterable[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def back_footer(label: str = "Back") -> str:
    return f"0. {label}\n{HOME_FOOTER}"


def pick(raw: str, options: list) -> Optional[int]:
    """1-based keypad choice to a list index, or None."""
    if not raw.isdigit():
        return None
    index = int(raw) - 1
    if 0 <= index < len(options):
        return index
    return None
