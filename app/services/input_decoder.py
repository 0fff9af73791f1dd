# app/services/input_decoder.py
"""
Turns the gateway's cumulative keystroke string into the newest input.

The gateway resends every keystroke since session start joined by "*", e.g.
"1*5551234567*4321". Only the newest token is ever consumed; all earlier
state lives on the session record.
"""
from typing import List

DELIMITER = "*"
HOME_KEY = "*"


def decode_tokens(text: str, delimiter: str = DELIMITER) -> List[str]:
    """Split the cumulative text into ordered, non-empty tokens."""
    if not text or not text.strip():
        return []
    return [t.strip() for t in text.split(delimiter) if t.strip()]


def current_input(text: str, delimiter: str = DELIMITER) -> str:
    """The newest token, or "" on first contact.

    "*" doubles as the delimiter, so a submission of a bare "*" shows up as
    an empty segment: the whole text is "*" or it ends in "**".
    """
    stripped = (text or "").strip()
    if stripped == delimiter or stripped.endswith(delimiter * 2):
        return HOME_KEY
    tokens = decode_tokens(stripped, delimiter)
    return tokens[-1] if tokens else ""
