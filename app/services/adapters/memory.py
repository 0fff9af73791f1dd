# app/services/adapters/memory.py
"""
In-process platform services for local development and tests.
Selected with ADAPTER_BACKEND=memory; seed_demo_data() fills a small catalog.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from app.schemas.betting import (
    Bet,
    BetFilter,
    BetReceipt,
    BetSelection,
    Event,
    Market,
    Selection,
    Sport,
    User,
)
from app.utils.money import quantize
from app.utils.phone import normalize_phone

logger = logging.getLogger(__name__)


def _hash_pin(pin: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", pin.encode(), salt, 10_000)


class InMemoryUserDirectory:
    def __init__(self):
        self._users: Dict[str, User] = {}
        self._pins: Dict[str, Tuple[bytes, bytes]] = {}

    def add_user(self, phone: str, name: str, pin: str, user_id: Optional[str] = None) -> User:
        key = normalize_phone(phone)
        user = User(id=user_id or uuid.uuid4().hex[:12], phone_number=key, full_name=name)
        salt = secrets.token_bytes(16)
        self._users[key] = user
        self._pins[key] = (salt, _hash_pin(pin, salt))
        return user

    async def find_by_phone(self, phone: str) -> Optional[User]:
        return self._users.get(normalize_phone(phone))

    async def authenticate(self, phone: str, pin: str) -> Optional[User]:
        key = normalize_phone(phone)
        stored = self._pins.get(key)
        if stored is None:
            return None
        salt, digest = stored
        if not hmac.compare_digest(digest, _hash_pin(pin, salt)):
            return None
        return self._users[key]

    async def create(self, phone: str, name: str, pin: str) -> Optional[User]:
        if normalize_phone(phone) in self._users:
            return None
        user = self.add_user(phone, name, pin)
        logger.info("Created user %s", user.id)
        return user


class InMemoryWallet:
    def __init__(self, default_balance: Decimal = Decimal("0")):
        self.default_balance = default_balance
        self._balances: Dict[str, Decimal] = {}

    async def get_balance(self, user_id: str) -> Decimal:
        return self._balances.get(user_id, self.default_balance)

    def credit(self, user_id: str, amount: Decimal) -> Decimal:
        balance = self._balances.get(user_id, self.default_balance) + Decimal(amount)
        self._balances[user_id] = balance
        return balance

    def debit(self, user_id: str, amount: Decimal) -> bool:
        balance = self._balances.get(user_id, self.default_balance)
        if amount > balance:
            return False
        self._balances[user_id] = balance - amount
        return True


class InMemoryCatalog:
    def __init__(self):
        self._sports: List[Sport] = []
        self._events: Dict[str, List[Event]] = {}

    def add_sport(self, key: str, title: str) -> Sport:
        sport = Sport(key=key, title=title)
        self._sports.append(sport)
        self._events.setdefault(key, [])
        return sport

    def add_event(self, sport_key: str, event: Event) -> Event:
        self._events.setdefault(sport_key, []).append(event)
        return event

    async def list_sports(self) -> List[Sport]:
        return list(self._sports)

    async def list_events(self, sport_key: str) -> List[Event]:
        return list(self._events.get(sport_key, []))


class InMemoryBetting:
    def __init__(self, wallet: InMemoryWallet):
        self.wallet = wallet
        self._bets: Dict[str, List[Bet]] = {}
        self._by_key: Dict[str, BetReceipt] = {}

    async def place_bet(self, user_id: str, selection: BetSelection, stake: Decimal,
                        idempotency_key: Optional[str] = None) -> Optional[BetReceipt]:
        if idempotency_key and idempotency_key in self._by_key:
            return self._by_key[idempotency_key]
        if not self.wallet.debit(user_id, stake):
            return None

        receipt = BetReceipt(
            reference=f"BET{uuid.uuid4().hex[:8].upper()}",
            stake=quantize(stake),
            potential_win=quantize(stake * selection.odds),
        )
        self._bets.setdefault(user_id, []).insert(0, Bet(
            reference=receipt.reference,
            stake=receipt.stake,
            status="pending",
            selection_name=selection.selection_name,
        ))
        if idempotency_key:
            self._by_key[idempotency_key] = receipt
        logger.info("Placed bet %s for user %s", receipt.reference, user_id)
        return receipt

    async def list_bets(self, user_id: str, bet_filter: BetFilter) -> List[Bet]:
        bets = self._bets.get(user_id, [])
        if bet_filter.status:
            bets = [b for b in bets if b.status == bet_filter.status.lower()]
        return bets[:bet_filter.limit]

    def settle(self, reference: str, status: str) -> None:
        for bets in self._bets.values():
            for i, bet in enumerate(bets):
                if bet.reference == reference:
                    bets[i] = bet.model_copy(update={"status": status.lower()})


def _event(event_id: str, home: str, away: str, start: datetime, odds: Tuple[str, ...]) -> Event:
    names = (home, "Draw", away) if len(odds) == 3 else (home, away)
    winner = Market(
        market_id=f"{event_id}-mw",
        name="Match Winner",
        selections=[
            Selection(selection_id=f"{event_id}-mw-{i}", name=n, odds=Decimal(o))
            for i, (n, o) in enumerate(zip(names, odds))
        ],
    )
    totals = Market(
        market_id=f"{event_id}-ou",
        name="Total Goals Over/Under 2.5",
        selections=[
            Selection(selection_id=f"{event_id}-ou-o", name="Over 2.5", odds=Decimal("1.90")),
            Selection(selection_id=f"{event_id}-ou-u", name="Under 2.5", odds=Decimal("1.90")),
        ],
    )
    return Event(event_id=event_id, home_team=home, away_team=away, start_time=start,
                 markets=[totals, winner])


def seed_demo_data(users: InMemoryUserDirectory, wallet: InMemoryWallet,
                   catalog: InMemoryCatalog) -> None:
    """Demo account 5551234567 / PIN 4321 with $100 and a few fixtures."""
    demo = users.add_user("5551234567", "Demo Player", "4321", user_id="demo-user")
    wallet.credit(demo.id, Decimal("100.00"))

    kickoff = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0) + timedelta(days=1)
    catalog.add_sport("soccer_epl", "EPL")
    catalog.add_event("soccer_epl", _event("epl-1", "Arsenal", "Chelsea", kickoff, ("2.10", "3.40", "3.20")))
    catalog.add_event("soccer_epl", _event("epl-2", "Liverpool", "Everton", kickoff + timedelta(hours=2),
                                           ("1.60", "4.00", "5.50")))
    catalog.add_sport("basketball_nba", "NBA")
    catalog.add_event("basketball_nba", _event("nba-1", "Lakers", "Celtics", kickoff, ("1.95", "1.85")))
    catalog.add_sport("tennis_atp", "ATP Tennis")
    logger.info("Seeded demo platform data")
