"""Transaction model (immutable, one row per on-chain transfer to a charity)."""

from datetime import datetime, timezone
from decimal import Decimal
import uuid

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class Transaction(UUIDMixin, SQLModel, table=True):
    __tablename__ = "transactions"
    # One on-chain transaction may pay several watched wallets (batch payouts).
    __table_args__ = (
        sa.UniqueConstraint(
            "charity_id", "source_notification_id", name="uq_transactions_charity_source"
        ),
    )

    charity_id: uuid.UUID = Field(foreign_key="charities.id", nullable=False, index=True)
    source_notification_id: str = Field(nullable=False, index=True)
    amount: Decimal = Field(nullable=False, sa_type=sa.Numeric(precision=78, scale=18))
    raw_payload: dict = Field(
        default_factory=dict,
        sa_type=sa.JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={"server_default": sa.text("CURRENT_TIMESTAMP")},
        sa_type=sa.DateTime(timezone=True),
    )
