"""
Wallet-watch webhook endpoint.

POST /webhook/v1/address

- 200 {"status": "accepted"}: transaction committed
- 200 {"status": "duplicate"}: already recorded, nothing written
- 200 {"status": "rejected", "reason": ...}: acknowledged, do not redeliver
- 503 INGESTION_RETRYABLE: not stored, redeliver
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.dependencies import get_gateway
from app.services.ingestion import WebhookIngestionGateway
from charity_watchdog_shared.schemas.webhooks import WebhookAck

router = APIRouter()


@router.post("/address", response_model=WebhookAck, response_model_exclude_none=True)
async def receive_address_notification(
    request: Request,
    gateway: WebhookIngestionGateway = Depends(get_gateway),
):
    """Record an address-activity notification from the wallet-watch service."""
    body = await request.body()
    result = await gateway.ingest(body)
    return WebhookAck(
        status=result.outcome,
        reason=result.reason,
        transaction_id=str(result.transaction_id) if result.transaction_id else None,
    )
