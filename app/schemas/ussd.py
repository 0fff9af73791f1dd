# app/schemas/ussd.py
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class UssdRequest(BaseModel):
    """One gateway callback."""
    session_id: str = Field(..., min_length=1, alias="sessionId")
    service_code: str = Field(..., min_length=1, alias="serviceCode")
    phone_number: str = Field(..., min_length=1, alias="phoneNumber")
    text: str = ""
    network_code: Optional[str] = Field(default=None, alias="networkCode")

    model_config = {"populate_by_name": True}

    @field_validator("text", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Optional[str]) -> str:
        return v or ""


class UssdTestRequest(BaseModel):
    """Payload for the development simulator endpoint."""
    phone_number: str = Field(..., min_length=1, alias="phoneNumber")
    text: str = ""
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    model_config = {"populate_by_name": True}


class UssdTestResponse(BaseModel):
    response: str
    session_id: str = Field(alias="sessionId")
    phone_number: str = Field(alias="phoneNumber")

    model_config = {"populate_by_name": True}
