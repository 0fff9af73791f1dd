# app/services/response_encoder.py
"""
Gateway response protocol: every reply starts with CON (keep the session
open for more input) or END (close it). Nothing else may be sent.
"""
from dataclasses import dataclass

CONTINUE = "CON"
TERMINATE = "END"
APOLOGY = "An error occurred. Please try again later."


@dataclass(frozen=True)
class Reply:
    text: str
    end: bool = False


def encode(reply: Reply) -> str:
    marker = TERMINATE if reply.end else CONTINUE
    return f"{marker} {reply.text}"


def apology() -> str:
    return encode(Reply(APOLOGY, end=True))


def is_terminal(response: str) -> bool:
    return response.startswith(f"{TERMINATE} ")
