# app/services/adapters/http.py
"""
httpx clients for the betting platform's REST API.
All four adapters share one AsyncClient (and its connection pool).
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from app.core.errors import ServiceUnavailable
from app.schemas.betting import Bet, BetFilter, BetReceipt, BetSelection, Event, Sport, User

logger = logging.getLogger(__name__)


def _unwrap(payload: Any) -> Any:
    # The platform wraps collections as {"data": [...]} on some routes
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class PlatformApi:
    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 3.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {"Accept": "application/json", "User-Agent": "ussd-gateway/1.0"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def request(self, service: str, method: str, path: str, *,
                      params: Optional[Dict[str, Any]] = None,
                      json: Optional[Dict[str, Any]] = None,
                      headers: Optional[Dict[str, str]] = None,
                      none_on: tuple = ()) -> Any:
        """Send a request; return decoded JSON, or None when the status is in none_on."""
        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise ServiceUnavailable(service, f"{method} {path}", str(e)) from e

        if response.status_code in none_on:
            return None
        if response.status_code >= 400:
            logger.warning("[platform] %s %s -> %s", method, path, response.status_code)
            raise ServiceUnavailable(service, f"{method} {path}", f"HTTP {response.status_code}")
        if not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


class HttpUserDirectory:
    def __init__(self, api: PlatformApi):
        self.api = api

    async def find_by_phone(self, phone: str) -> Optional[User]:
        payload = await self.api.request("users", "GET", "/users/lookup",
                                         params={"phoneNumber": phone}, none_on=(404,))
        return User.model_validate(payload) if payload else None

    async def authenticate(self, phone: str, pin: str) -> Optional[User]:
        payload = await self.api.request("users", "POST", "/users/ussd/authenticate",
                                         json={"phoneNumber": phone, "pin": pin}, none_on=(401, 404))
        return User.model_validate(payload) if payload else None

    async def create(self, phone: str, name: str, pin: str) -> Optional[User]:
        payload = await self.api.request("users", "POST", "/users/ussd",
                                         json={"phoneNumber": phone, "fullName": name, "pin": pin},
                                         none_on=(409,))
        return User.model_validate(payload) if payload else None


class HttpWallet:
    def __init__(self, api: PlatformApi):
        self.api = api

    async def get_balance(self, user_id: str) -> Decimal:
        payload = await self.api.request("wallet", "GET", f"/wallet/{user_id}/balance")
        return Decimal(str((payload or {}).get("balance", "0")))


class HttpCatalog:
    def __init__(self, api: PlatformApi):
        self.api = api

    async def list_sports(self) -> List[Sport]:
        payload = await self.api.request("catalog", "GET", "/odds/sports")
        return [Sport.model_validate(item) for item in _unwrap(payload) or []]

    async def list_events(self, sport_key: str) -> List[Event]:
        payload = await self.api.request("catalog", "GET", f"/odds/sports/{sport_key}/events")
        return [Event.model_validate(item) for item in _unwrap(payload) or []]


class HttpBetting:
    def __init__(self, api: PlatformApi, currency: str = "USD"):
        self.api = api
        self.currency = currency

    async def place_bet(self, user_id: str, selection: BetSelection, stake: Decimal,
                        idempotency_key: Optional[str] = None) -> Optional[BetReceipt]:
        body = {
            "userId": user_id,
            "selections": [{**selection.model_dump(mode="json", by_alias=True), "status": "pending"}],
            "stake": str(stake),
            "currency": self.currency,
        }
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        payload = await self.api.request("betting", "POST", "/betting/bets", json=body,
                                         headers=headers, none_on=(409, 422))
        return BetReceipt.model_validate(payload) if payload else None

    async def list_bets(self, user_id: str, bet_filter: BetFilter) -> List[Bet]:
        params = {"limit": bet_filter.limit}
        if bet_filter.status:
            params["status"] = bet_filter.status
        payload = await self.api.request("betting", "GET", f"/betting/users/{user_id}/bets", params=params)
        return [Bet.model_validate(item) for item in _unwrap(payload) or []]
