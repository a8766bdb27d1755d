"""Charity model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Charity(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "charities"

    name: str = Field(nullable=False)
    description: str = Field(default="", nullable=False)
    wallet_address: str = Field(unique=True, nullable=False, index=True)
    # Set from the wallet-watch service before the row is ever inserted.
    subscription_id: Optional[str] = Field(default=None, unique=True, index=True)
