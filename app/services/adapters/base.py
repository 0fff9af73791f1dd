# app/services/adapters/base.py
"""
Contracts for the platform services the USSD menus consume.

Implementations live in http.py (platform REST API) and memory.py
(development and tests). None of them own session state.
"""
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Protocol

from app.schemas.betting import Bet, BetFilter, BetReceipt, BetSelection, Event, Sport, User


class UserDirectory(Protocol):
    async def find_by_phone(self, phone: str) -> Optional[User]: ...

    async def authenticate(self, phone: str, pin: str) -> Optional[User]: ...

    async def create(self, phone: str, name: str, pin: str) -> Optional[User]: ...


class Wallet(Protocol):
    async def get_balance(self, user_id: str) -> Decimal: ...


class Catalog(Protocol):
    async def list_sports(self) -> List[Sport]: ...

    async def list_events(self, sport_key: str) -> List[Event]: ...


class Betting(Protocol):
    async def place_bet(self, user_id: str, selection: BetSelection, stake: Decimal,
                        idempotency_key: Optional[str] = None) -> Optional[BetReceipt]: ...

    async def list_bets(self, user_id: str, bet_filter: BetFilter) -> List[Bet]: ...
