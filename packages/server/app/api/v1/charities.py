"""
Charity API endpoints.

GET    /api/v1/charity: List onboarded charities
POST   /api/v1/charity/new: Onboard a charity (subscribe wallet + store record)
GET    /api/v1/charity/{charity_id}: List transactions received by a charity
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from app.core.dependencies import get_orchestrator, get_store
from app.core.errors import NotFound
from app.services.onboarding import SubscriptionOrchestrator
from app.services.store import CharityStore
from charity_watchdog_shared.schemas.charities import (
    CharityCreated,
    CharityCreatedResponse,
    CharityCreateRequest,
    CharityListResponse,
    CharityRead,
    TransactionListResponse,
    TransactionRead,
)

router = APIRouter()


@router.get("", response_model=CharityListResponse)
async def list_charities(store: CharityStore = Depends(get_store)):
    """List all charities. Only committed rows are returned."""
    charities = await store.list_charities()
    return CharityListResponse(data=[CharityRead.model_validate(c) for c in charities])


@router.post("/new", response_model=CharityCreatedResponse, status_code=201)
async def create_charity(
    body: CharityCreateRequest,
    orchestrator: SubscriptionOrchestrator = Depends(get_orchestrator),
):
    """
    Onboard a charity.

    Errors: 502 SUBSCRIPTION_CREATION_FAILED (retry), 409 DUPLICATE_WALLET
    (already onboarded), 503 PERSISTENCE_FAILED (retry).
    """
    charity_id = await orchestrator.onboard(body.name, body.description, body.wallet_address)
    return CharityCreatedResponse(data=CharityCreated(id=charity_id))


@router.get("/{charity_id}", response_model=TransactionListResponse)
async def list_charity_transactions(
    charity_id: uuid.UUID,
    store: CharityStore = Depends(get_store),
):
    """List the transactions recorded for one charity."""
    charity = await store.get_charity(charity_id)
    if charity is None:
        raise NotFound("Charity not found", meta={"charity_id": str(charity_id)})
    transactions = await store.list_transactions(charity_id)
    return TransactionListResponse(data=[TransactionRead.model_validate(t) for t in transactions])
