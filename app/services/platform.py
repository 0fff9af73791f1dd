# app/services/platform.py
"""
Bundle of platform adapters as the menus see them.
Every call is bounded by the adapter timeout; failures surface as ServiceUnavailable.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional

from app.schemas.betting import Bet, BetFilter, BetReceipt, BetSelection, Event, Sport, User
from app.services.adapters.base import Betting, Catalog, UserDirectory, Wallet
from app.utils.timeout_protection import with_timeout


class PlatformServices:
    def __init__(self, users: UserDirectory, wallet: Wallet, catalog: Catalog, betting: Betting,
                 timeout_seconds: float = 3.0, on_close: Optional[Callable[[], Awaitable[Any]]] = None):
        self.users = users
        self.wallet = wallet
        self.catalog = catalog
        self.betting = betting
        self.timeout_seconds = timeout_seconds
        self._on_close = on_close

    async def _call(self, service: str, operation: str, coro: Awaitable[Any]) -> Any:
        return await with_timeout(coro, self.timeout_seconds, service, operation)

    async def find_user(self, phone: str) -> Optional[User]:
        return await self._call("users", "find_by_phone", self.users.find_by_phone(phone))

    async def authenticate(self, phone: str, pin: str) -> Optional[User]:
        return await self._call("users", "authenticate", self.users.authenticate(phone, pin))

    async def register(self, phone: str, name: str, pin: str) -> Optional[User]:
        return await self._call("users", "create", self.users.create(phone, name, pin))

    async def balance(self, user_id: str) -> Decimal:
        return await self._call("wallet", "get_balance", self.wallet.get_balance(user_id))

    async def sports(self) -> List[Sport]:
        return await self._call("catalog", "list_sports", self.catalog.list_sports())

    async def events(self, sport_key: str) -> List[Event]:
        return await self._call("catalog", "list_events", self.catalog.list_events(sport_key))

    async def place_bet(self, user_id: str, selection: BetSelection, stake: Decimal,
                        idempotency_key: Optional[str] = None) -> Optional[BetReceipt]:
        return await self._call("betting", "place_bet",
                                self.betting.place_bet(user_id, selection, stake, idempotency_key))

    async def bets(self, user_id: str, status: Optional[str] = None, limit: int = 5) -> List[Bet]:
        bet_filter = BetFilter(status=status, limit=limit)
        return await self._call("betting", "list_bets", self.betting.list_bets(user_id, bet_filter))

    async def close(self) -> None:
        if self._on_close is not None:
            await self._on_close()
