# app/schemas/betting.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlatformModel(BaseModel):
    """Shared config: accept camelCase payloads from the platform API."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class User(PlatformModel):
    id: str
    phone_number: str = Field(alias="phoneNumber")
    full_name: str = Field(alias="fullName")

    @property
    def first_name(self) -> str:
        parts = self.full_name.split()
        return parts[0] if parts else "User"


class Sport(PlatformModel):
    key: str
    title: str


class Selection(PlatformModel):
    selection_id: str = Field(alias="selectionId")
    name: str = Field(alias="selectionName")
    odds: Decimal


class Market(PlatformModel):
    market_id: str = Field(alias="marketId")
    name: str = Field(alias="marketName")
    selections: list[Selection] = Field(default_factory=list)


class Event(PlatformModel):
    event_id: str = Field(alias="eventId")
    home_team: str = Field(alias="homeTeam")
    away_team: str = Field(alias="awayTeam")
    start_time: datetime = Field(alias="startTime")
    markets: list[Market] = Field(default_factory=list)

    @property
    def title(self) -> str:
        return f"{self.home_team} vs {self.away_team}"


class BetSelection(PlatformModel):
    """What gets sent to the betting service for a single-selection bet."""
    event_id: str = Field(alias="eventId")
    market_id: str = Field(alias="marketId")
    selection_id: str = Field(alias="selectionId")
    odds: Decimal
    event_name: str = Field(alias="eventName")
    market_name: str = Field(alias="marketName")
    selection_name: str = Field(alias="selectionName")
    start_time: Optional[datetime] = Field(default=None, alias="startTime")


class BetReceipt(PlatformModel):
    reference: str
    stake: Decimal
    potential_win: Decimal = Field(alias="potentialWin")


class Bet(PlatformModel):
    reference: str
    stake: Decimal
    status: str
    selection_name: str = Field(default="", alias="selectionName")

    @field_validator("status")
    @classmethod
    def _lower_status(cls, v: str) -> str:
        return v.strip().lower()


class BetFilter(PlatformModel):
    status: Optional[str] = None
    limit: int = 5
