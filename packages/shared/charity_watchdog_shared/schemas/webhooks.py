"""Wallet-watch webhook payload and acknowledgement schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .common import IngestionOutcome, RejectionReason


class AddressNotification(BaseModel):
    """
    Activity notification for a watched address.

    Only the subscription reference, the on-chain transaction id and the
    amount are required; everything else the service sends is kept in the
    raw payload. Ids may arrive as JSON numbers and are stored as strings.
    ``amount`` is bounded to what the transactions table can hold.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    subscription_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("subscription_id", "subscriptionId"),
    )
    tx_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("tx_id", "txId", "tx_hash", "txHash", "hash"),
    )
    amount: Decimal = Field(max_digits=78, decimal_places=18)

    @field_validator("subscription_id", "tx_id", mode="before")
    @classmethod
    def _ids_as_text(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class WebhookAck(BaseModel):
    status: IngestionOutcome
    reason: Optional[RejectionReason] = None
    transaction_id: Optional[str] = None
