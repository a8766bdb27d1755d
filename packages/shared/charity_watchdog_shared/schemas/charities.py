"""Charity and transaction schemas shared between the server and frontend codegen."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import UUID4, AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Charities
# ---------------------------------------------------------------------------

class CharityCreateRequest(BaseModel):
    """Onboarding request. Accepts the camelCase keys the web client sends."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    wallet_address: str = Field(
        validation_alias=AliasChoices("walletAddress", "wallet_address"),
        max_length=255,
    )

    @field_validator("wallet_address")
    @classmethod
    def wallet_address_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("walletAddress must not be empty")
        return v


class CharityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    name: str
    description: str
    wallet_address: str
    subscription_id: Optional[str] = None
    created_at: datetime


class CharityCreated(BaseModel):
    id: UUID4


class CharityCreatedResponse(BaseModel):
    data: CharityCreated


class CharityListResponse(BaseModel):
    data: List[CharityRead] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    charity_id: UUID4
    source_notification_id: str
    amount: Decimal
    raw_payload: dict
    received_at: datetime


class TransactionListResponse(BaseModel):
    data: List[TransactionRead] = Field(default_factory=list)
