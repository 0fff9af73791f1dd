# app/utils/phone.py
import re

import phonenumbers

# Keypad entry: optional +, then 10-15 digits with the usual separators
PHONE_FORMAT = re.compile(r"^\+?[\d\s\-\(\)]{10,15}$")


def normalize_phone(raw: str) -> str:
    """Keep a leading '+', drop spaces, dashes and parentheses."""
    raw = (raw or "").strip()
    digits = re.sub(r"\D+", "", raw)
    return f"+{digits}" if raw.startswith("+") else digits


def is_valid_phone(raw: str, region: str = "US") -> bool:
    """Format check on the keyed input, then a length/plan check via phonenumbers."""
    if not raw or not PHONE_FORMAT.match(raw.strip()):
        return False
    try:
        parsed = phonenumbers.parse(raw.strip(), region)
    except phonenumbers.phonenumberutil.NumberParseException:
        return False
    return phonenumbers.is_possible_number(parsed)
