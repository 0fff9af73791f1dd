# app/services/menus/auth.py
"""Login (phone -> pin) and registration (phone -> name -> pin -> confirm_pin)."""
import logging
import re
from typing import Optional

from app.core.errors import ErrorSeverity, ServiceUnavailable, log_error
from app.core.logging import mask_phone
from app.services.menus.router import MenuRouter
from app.services.menus.texts import ACCOUNT_OPTIONS, prompt_text
from app.services.navigation import ACCOUNT_MENU, LOGIN, REGISTER, Turn
from app.services.response_encoder import Reply
from app.utils.phone import is_valid_phone

logger = logging.getLogger(__name__)

router = MenuRouter()

PIN_FORMAT = re.compile(r"^\d{4}$")
MIN_NAME_LENGTH = 2

BAD_PHONE = "Invalid phone number format."
BAD_CREDENTIALS = "Invalid credentials."
LOGIN_FAILED = "Login failed. Please try again."
ALREADY_REGISTERED = "Phone number already registered.\nPlease login instead."
NAME_TOO_SHORT = "Name too short."
BAD_PIN = "PIN must be 4 digits."
PIN_MISMATCH = "PINs do not match."
REGISTRATION_FAILED = "Registration failed. Please try again later."

PROMPTS = {
    "phone": "Enter your phone number:",
    "pin": "Enter your PIN:",
    "name": "Enter your full name:",
    "new_pin": "Create a 4-digit PIN:",
    "confirm_pin": "Confirm your PIN:",
}


# --- login ---

@router.screen(LOGIN, "phone")
async def login_phone_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    return Reply(prompt_text("LOGIN", PROMPTS["phone"], error))


@router.screen(LOGIN, "pin")
async def login_pin_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    return Reply(prompt_text("LOGIN", PROMPTS["pin"], error))


@router.on(LOGIN, "phone")
async def login_phone_input(turn: Turn) -> Reply:
    if not is_valid_phone(turn.input, turn.settings.PHONE_DEFAULT_REGION):
        return await turn.show(BAD_PHONE)
    turn.set("login_phone", turn.input.strip())
    turn.step = "pin"
    return await turn.show()


@router.on(LOGIN, "pin")
async def login_pin_input(turn: Turn) -> Reply:
    phone = turn.get("login_phone")
    if not phone:
        turn.step = "phone"
        return await turn.show()

    try:
        user = await turn.services.authenticate(phone, turn.input)
    except ServiceUnavailable as e:
        log_error(e, {"component": "login", "phone": mask_phone(phone)}, ErrorSeverity.MEDIUM)
        turn.pop("login_phone")
        turn.step = "phone"
        return await turn.show(LOGIN_FAILED)

    if user is None:
        logger.info("Login rejected for %s", mask_phone(phone))
        turn.pop("login_phone")
        turn.step = "phone"
        return await turn.show(BAD_CREDENTIALS)

    turn.sign_in(user)
    turn.navigate_to(ACCOUNT_MENU)
    logger.info("User %s logged in", user.id)
    return await turn.show()


# --- registration ---

@router.screen(REGISTER)
async def register_screen(turn: Turn, error: Optional[str] = None) -> Reply:
    prompt = PROMPTS["new_pin"] if turn.step == "pin" else PROMPTS.get(turn.step or "phone", PROMPTS["phone"])
    return Reply(prompt_text("REGISTER", prompt, error))


@router.on(REGISTER, "phone")
async def register_phone_input(turn: Turn) -> Reply:
    phone = turn.input.strip()
    if not is_valid_phone(phone, turn.settings.PHONE_DEFAULT_REGION):
        return await turn.show(BAD_PHONE)

    try:
        existing = await turn.services.find_user(phone)
    except ServiceUnavailable as e:
        log_error(e, {"component": "register", "step": "phone"}, ErrorSeverity.MEDIUM)
        return Reply(REGISTRATION_FAILED, end=True)
    if existing is not None:
        return await turn.show(ALREADY_REGISTERED)

    turn.set("register_phone", phone)
    turn.step = "name"
    return await turn.show()


@router.on(REGISTER, "name")
async def register_name_input(turn: Turn) -> Reply:
    name = turn.input.strip()
    if len(name) < MIN_NAME_LENGTH:
        return await turn.show(NAME_TOO_SHORT)
    turn.set("register_name", name)
    turn.step = "pin"
    return await turn.show()


@router.on(REGISTER, "pin")
async def register_pin_input(turn: Turn) -> Reply:
    if not PIN_FORMAT.match(turn.input):
        return await turn.show(BAD_PIN)
    turn.set("register_pin", turn.input)
    turn.step = "confirm_pin"
    return await turn.show()


@router.on(REGISTER, "confirm_pin")
async def register_confirm_input(turn: Turn) -> Reply:
    phone, name, pin = turn.get("register_phone"), turn.get("register_name"), turn.get("register_pin")
    if not (phone and name and pin):
        turn.clear_flow("register")
        turn.step = "phone"
        return await turn.show()

    if turn.input != pin:
        turn.pop("register_pin")
        turn.step = "pin"
        return await turn.show(PIN_MISMATCH)

    try:
        user = await turn.services.register(phone, name, pin)
    except ServiceUnavailable as e:
        log_error(e, {"component": "register", "step": "confirm_pin"}, ErrorSeverity.HIGH)
        user = None
    if user is None:
        turn.clear_flow("register")
        return Reply(REGISTRATION_FAILED, end=True)

    turn.sign_in(user)
    turn.navigate_to(ACCOUNT_MENU)
    logger.info("Registered user %s", user.id)
    return Reply(f"Registration successful!\nWelcome {name}!\n\n{ACCOUNT_OPTIONS}")
